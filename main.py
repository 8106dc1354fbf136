"""Life Encyclopedia - verified biographical timelines

Simple CLI for researching a person.
"""

import argparse
import asyncio

from life_encyclopedia.agents.pipeline import ResearchPipeline
from life_encyclopedia.errors import StorageError
from life_encyclopedia.models.person import Person
from life_encyclopedia.models.research import PipelineConfig
from life_encyclopedia.services import supabase as db


def print_timeline(data: dict) -> None:
    person = data.get("person", {})
    summary = data.get("research_summary", {})

    print(f"\n{'='*50}")
    print(person.get("name", ""))
    birth, death = person.get("birthDate"), person.get("deathDate")
    if birth:
        print(f"{birth} - {death or 'Present'}")
    print(f"{'='*50}")
    print(person.get("summary", ""))

    for event in person.get("events", []):
        sources = event.get("sources", [])
        print(f"\n  {event.get('date')}  {event.get('title')}  [{event.get('datePrecision')}]")
        print(f"     {event.get('description', '')}")
        for source in sources[:3]:
            print(f"     - {source.get('title')} ({source.get('deepLinkURL') or source.get('url')})")

    print(f"\n   Events: {summary.get('total_events')} ({summary.get('events_with_sources')} cited)")
    print(f"   Sources: {summary.get('total_sources')} ({summary.get('authoritative_sources')} authoritative)")


async def run_research(name: str, preset: str = "default", save: bool = False):
    """Research `name` and print the resulting timeline."""
    print(f"Researching: {name} ({preset})")
    print("-" * 50)

    pipeline = ResearchPipeline()
    last_stage = None

    async for event in pipeline.stream(name, PipelineConfig.preset(preset), preset=preset):
        event_type = event.event.value
        data = event.data

        if event_type == "stage_progress":
            if data.get("stage") != last_stage:
                last_stage = data.get("stage")
                print(f"\n[~] {data.get('stage_name')}")
            print(f"  [{data.get('overall_progress', 0):.0%}] {data.get('message')}")

        elif event_type == "research_complete":
            print(f"\n[*] Research Complete! Runtime: {data.get('runtime_ms')}ms")
            print_timeline(data)
            if save:
                try:
                    saved = await db.save_person(Person.model_validate(data["person"]))
                except StorageError as e:
                    print(f"\n[!] Could not save: {e}")
                else:
                    print(f"\n[+] Saved as {saved.id}")

        elif event_type == "error":
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


def main():
    parser = argparse.ArgumentParser(description="Life Encyclopedia research tool")
    parser.add_argument("--name", "-n", required=True, help="Person to research")
    parser.add_argument(
        "--preset",
        "-p",
        choices=["quick", "default", "thorough"],
        default="default",
        help="Pipeline preset",
    )
    parser.add_argument("--save", action="store_true", help="Save the result to Supabase")

    args = parser.parse_args()

    asyncio.run(run_research(args.name, args.preset, args.save))


if __name__ == "__main__":
    main()
