"""
Demo Scenario Loader

Loads demo scenarios from config/demo_scenarios.yaml for presentations and
manual testing of the matching engine.
Usage: python -m tutormatch.scripts.load_demo --scenario busy_tutor
"""
import asyncio
import argparse
import logging
import random
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from faker import Faker
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from tutormatch.database import AsyncSessionLocal, init_models
from tutormatch.models import (
    AvailabilitySlot, RequestType, Subject, Timeslot, TutoringRequest, User, YearGroup,
)
from tutormatch.services.target_week import ensure_monday, parse_target_week, upcoming_monday

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "demo_scenarios.yaml"

# Child tables first
DEMO_TABLES = [
    "matches",
    "request_timeslots",
    "tutoring_requests",
    "availability_slots",
    "user_subjects",
    "users",
    "timeslots",
    "subjects",
]

TUTOR_YEAR_GROUPS = [YearGroup.YEAR_11, YearGroup.YEAR_12, YearGroup.YEAR_13]
TUTEE_YEAR_GROUPS = [YearGroup.YEAR_9, YearGroup.YEAR_10, YearGroup.YEAR_11, YearGroup.YEAR_12]

fake = Faker()


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> dict:
    """Load scenario definitions from YAML"""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def generate_scenario(settings: Dict[str, Any], subject_names: List[str]) -> Dict[str, List[dict]]:
    """
    Expand a "generate" block into explicit tutor and tutee entries.

    Range settings are inclusive [low, high] pairs. The same seed always
    yields the same students.
    """
    seed = settings.get("seed", 0)
    rng = random.Random(seed)
    Faker.seed(seed)
    labels = Timeslot.all_labels()

    def pick(bounds, population):
        low, high = bounds
        return rng.sample(population, min(len(population), rng.randint(low, high)))

    tutors = []
    for _ in range(settings.get("tutors", 0)):
        tutors.append({
            "year_group": rng.choice(TUTOR_YEAR_GROUPS).value,
            "max_sessions_per_week": rng.randint(*settings.get("max_sessions_per_week", [3, 3])),
            "subjects": pick(settings.get("subjects_per_tutor", [1, 1]), subject_names),
            "availability": sorted(pick(settings.get("availability_per_tutor", [3, 5]), labels), key=labels.index),
        })

    tutees = []
    for _ in range(settings.get("tutees", 0)):
        tutees.append({
            "year_group": rng.choice(TUTEE_YEAR_GROUPS).value,
            "subject": rng.choice(subject_names),
            "timeslots": sorted(pick(settings.get("timeslots_per_tutee", [1, 3]), labels), key=labels.index),
        })

    return {"tutors": tutors, "tutees": tutees}


async def clear_demo_data(session_factory: async_sessionmaker = AsyncSessionLocal):
    """Clear all existing data"""
    async with session_factory() as session:
        for table in DEMO_TABLES:
            await session.execute(text(f"DELETE FROM {table}"))
        await session.commit()
    print("✓ Cleared existing data")


async def _seed_catalog(session, subject_names: List[str]):
    subjects = {name: Subject(name=name) for name in subject_names}
    timeslots = {label: Timeslot(label=label) for label in Timeslot.all_labels()}
    session.add_all(list(subjects.values()) + list(timeslots.values()))
    await session.flush()
    return subjects, timeslots


def _new_user(year_group: str, max_sessions: Optional[int] = None) -> User:
    user = User(
        full_name=fake.name(),
        email=fake.unique.email(),
        year_group=YearGroup(year_group),
    )
    if max_sessions is not None:
        user.max_sessions_per_week = max_sessions
    return user


async def load_scenario(
    scenario_name: str,
    target_week: Optional[date] = None,
    config: Optional[dict] = None,
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> Dict[str, int]:
    """
    Replace all data with one demo scenario.

    Returns:
        Counts of tutors, tutees and requests created

    Raises:
        KeyError: If the scenario is not defined in the config
    """
    config = config if config is not None else load_config()
    scenario = config["scenarios"][scenario_name]
    subject_names = config.get("subjects", [])
    target_week = ensure_monday(target_week or upcoming_monday())

    if "generate" in scenario:
        scenario = {**scenario, **generate_scenario(scenario["generate"], subject_names)}

    print(f"\nLoading '{scenario_name}' scenario for week {target_week}...")
    if scenario.get("description"):
        print(f"  {scenario['description']}")

    await clear_demo_data(session_factory)

    requests_created = 0
    async with session_factory() as session:
        subjects, timeslots = await _seed_catalog(session, subject_names)

        for entry in scenario.get("tutors", []):
            tutor = _new_user(entry["year_group"], entry.get("max_sessions_per_week"))
            tutor.subjects = [subjects[name] for name in entry["subjects"]]
            session.add(tutor)

            for label in entry.get("availability", []):
                day, period = Timeslot.parse_label(label)
                session.add(AvailabilitySlot(user=tutor, day_of_week=day, period=period))

            for name in entry["subjects"]:
                session.add(TutoringRequest(
                    user=tutor,
                    subject=subjects[name],
                    kind=RequestType.TUTOR,
                    year_group=tutor.year_group,
                    target_week=target_week,
                ))
                requests_created += 1

        for entry in scenario.get("tutees", []):
            tutee = _new_user(entry["year_group"])
            tutee.subjects = [subjects[entry["subject"]]]
            session.add(tutee)
            session.add(TutoringRequest(
                user=tutee,
                subject=subjects[entry["subject"]],
                kind=RequestType.TUTEE,
                year_group=tutee.year_group,
                target_week=target_week,
                possible_timeslots=[timeslots[label] for label in entry["timeslots"]],
            ))
            requests_created += 1

        await session.commit()

    summary = {
        "tutors": len(scenario.get("tutors", [])),
        "tutees": len(scenario.get("tutees", [])),
        "requests": requests_created,
    }
    print(f"  Created {summary['tutors']} tutors and {summary['tutees']} tutees")
    print(f"  Created {summary['requests']} outstanding requests")
    print(f"  ✓ Scenario '{scenario_name}' loaded")
    return summary


async def run(args):
    if args.create_tables:
        await init_models()
        print("✓ Tables created")

    config = load_config(Path(args.config))
    target_week = parse_target_week(args.week) if args.week else None
    await load_scenario(args.scenario, target_week=target_week, config=config)

    if args.run_matching:
        from tutormatch.services.matching_service import get_matching_service

        created = await get_matching_service().run_for_week(target_week or upcoming_monday())
        print(f"\n✅ Matching run created {created} matches")


def main():
    """CLI entry point"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Load demo scenarios")
    parser.add_argument(
        "--scenario",
        "-s",
        required=True,
        help="Scenario to load (see config/demo_scenarios.yaml)"
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to the scenario YAML file"
    )
    parser.add_argument(
        "--week",
        help="Target week as YYYY-MM-DD, must be a Monday (default: upcoming Monday)"
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables from the models before loading"
    )
    parser.add_argument(
        "--run-matching",
        action="store_true",
        help="Run matching for the target week after loading"
    )

    args = parser.parse_args()

    config = load_config(Path(args.config))
    if args.scenario not in config.get("scenarios", {}):
        print(f"ERROR: Unknown scenario '{args.scenario}'")
        print(f"Available scenarios: {', '.join(config.get('scenarios', {}).keys())}")
        return

    asyncio.run(run(args))


if __name__ == "__main__":
    main()
