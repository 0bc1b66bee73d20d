#!/usr/bin/env python3
"""
Seed script to generate a demo model for manual and performance testing.

Generates a task forest with realistic project structure:
- Several root projects
- Phases and work packages below them (leaves carry budget / todo)
- Collaborators logging contributions on leaf tasks over working days

Usage:
    python -m scripts.seed [--tasks 200] [--days 60] [--clear]

Options:
    --tasks N          Approximate number of tasks to generate (default: 200)
    --collaborators N  Number of collaborators (default: 5)
    --days N           Working days of contributions, ending today (default: 60)
    --clear            Drop and recreate the tables first
    --benchmark        Move a large subtree and measure the path rewrite
"""

import argparse
import random
import time
from datetime import date, timedelta

from activitymgr import Collaborator, Contribution, Database, ModelManager, Task
from activitymgr.logging_config import setup_logging


def generate_tasks(manager: ModelManager, num_tasks: int) -> list[Task]:
    """
    Create root projects, phases and leaf work packages.

    Returns the leaf tasks.
    """
    leaves = []
    created = 0
    project_index = 0

    print(f"Generating ~{num_tasks} tasks...")
    while created < num_tasks:
        project = manager.create_task(
            None, Task(code=f"PRJ{project_index:02d}", name=f"Project {project_index}")
        )
        created += 1
        for phase_index in range(random.randint(2, 5)):
            phase = manager.create_task(
                project, Task(code=f"PH{phase_index}", name=f"Phase {phase_index}")
            )
            created += 1
            for leaf_index in range(random.randint(3, 8)):
                budget = random.randint(1, 20) * 100
                leaf = manager.create_task(
                    phase,
                    Task(
                        code=f"WP{leaf_index:02d}",
                        name=f"Work package {phase_index}.{leaf_index}",
                        budget=budget,
                        todo=budget,
                    ),
                )
                leaves.append(leaf)
                created += 1
        project_index += 1
    return leaves


def generate_contributions(
    manager: ModelManager,
    collaborators: list[Collaborator],
    leaves: list[Task],
    num_days: int,
) -> int:
    """Each collaborator logs a full day per working day, split over 1-3 tasks."""
    durations = [duration.id for duration in manager.get_active_durations()]
    day = date.today() - timedelta(days=num_days)
    count = 0

    print(f"Generating contributions over {num_days} days...")
    while day <= date.today():
        if day.weekday() < 5:
            for collaborator in collaborators:
                remaining = 100
                for leaf in random.sample(leaves, k=min(3, len(leaves))):
                    if remaining <= 0:
                        break
                    amount = max(d for d in durations if d <= remaining)
                    manager.create_contribution(
                        Contribution.on(day, collaborator.id, leaf.id, amount),
                        update_todo=True,
                    )
                    remaining -= amount
                    count += 1
        day += timedelta(days=1)
    return count


def run_benchmark(manager: ModelManager) -> None:
    """Move the largest root project under another one and time it."""
    roots = manager.get_sub_tasks(None)
    if len(roots) < 2:
        print("Not enough root tasks for the benchmark!")
        return

    source, destination = roots[0], roots[-1]
    print(f"\n=== Benchmark: moving {source.code} under {destination.code} ===")
    start_time = time.time()
    manager.move_task(source, destination)
    print(f"Move time: {(time.time() - start_time) * 1000:.2f}ms")


def print_stats(manager: ModelManager) -> None:
    sums = manager.get_task_sums(None)
    print("\n=== Model Statistics ===")
    print(f"Root tasks:     {manager.get_root_tasks_count()}")
    print(f"Collaborators:  {len(manager.get_collaborators())}")
    print(f"Contributions:  {sums.contributions_nb}")
    print(f"Budget:         {sums.budget_sum / 100:.2f} days")
    print(f"Consumed:       {sums.consumed_sum / 100:.2f} days")
    print(f"Todo:           {sums.todo_sum / 100:.2f} days")

    problems = manager.check_model_integrity()
    print(f"Integrity:      {'OK' if not problems else f'{len(problems)} problem(s)'}")


def main():
    parser = argparse.ArgumentParser(description="Seed the database with a demo model")
    parser.add_argument("--tasks", type=int, default=200, help="Approximate number of tasks")
    parser.add_argument("--collaborators", type=int, default=5, help="Number of collaborators")
    parser.add_argument("--days", type=int, default=60, help="Days of contributions")
    parser.add_argument("--clear", action="store_true", help="Drop existing tables first")
    parser.add_argument("--benchmark", action="store_true", help="Run benchmark after seeding")

    args = parser.parse_args()
    setup_logging(level="WARNING")

    print("=== ActivityMgr Seed Script ===")
    database = Database()
    if args.clear:
        print("Clearing existing data...")
        database.drop_tables()
    manager = ModelManager(database)
    manager.initialize()

    start_time = time.time()
    leaves = generate_tasks(manager, args.tasks)
    collaborators = [manager.create_new_collaborator() for _ in range(args.collaborators)]
    print(f"Generation time: {time.time() - start_time:.2f}s")

    start_time = time.time()
    count = generate_contributions(manager, collaborators, leaves, args.days)
    print(f"Inserted {count} contributions in {time.time() - start_time:.2f}s")

    print_stats(manager)

    if args.benchmark:
        run_benchmark(manager)

    print("\n=== Seeding Complete ===")
    database.dispose()


if __name__ == "__main__":
    main()
