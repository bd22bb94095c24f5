#!/usr/bin/env python3
"""
esmodeller Demo - Shows the model lifecycle, hooks and cursors.

Runs against the in-memory backend by default so no cluster is needed.
Set STORE_BACKEND=elasticsearch (and ES_HOSTS) to run it against a cluster.
"""

import asyncio
import os
from datetime import datetime, timezone

from esmodeller import Modeller, ModellerConfig, ValidationError


def now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def main():
    print("=" * 60)
    print("esmodeller Demo - Models, Hooks and Cursors")
    print("=" * 60)
    print()

    os.environ.setdefault("STORE_BACKEND", "memory")
    config = ModellerConfig.from_env()
    print(f"[Setup] Using {config.backend.value} backend")

    async with Modeller(config) as modeller:
        # 1. Define entity classes
        print("\n[Step 1] Defining entity classes...")

        Task = modeller.create_model(
            "tasks",
            {
                "title": {"type": "string", "required": True},
                "status": {"type": "string", "required": True},
                "priority": "integer",
                "created_at": "string",
                "updated_at": "string",
            },
        )

        @Task.hook("before_create")
        def stamp_created(task):
            task.created_at = now()

        @Task.hook("before_update")
        def stamp_updated(task):
            task.updated_at = now()

        print(f"  - Registered {len(modeller)} entity class: {Task.__name__}")
        print(f"  - Fields: {', '.join(Task.schema.field_names)}")

        # 2. Create tasks
        print("\n[Step 2] Creating tasks...")

        tasks_data = [
            {"title": "Implement login", "status": "done", "priority": 1},
            {"title": "Fix database bug", "status": "in_progress", "priority": 2},
            {"title": "Write documentation", "status": "todo", "priority": 3},
        ]

        tasks = []
        for task_data in tasks_data:
            task = await Task.create(task_data)
            tasks.append(task)
            print(f"  - Created: {task.title} [{task.status}] id={task.id}")

        # 3. Validation
        print("\n[Step 3] Saving an invalid task...")
        print("-" * 50)

        try:
            await Task.create({"title": "No status", "priority": "high"})
        except ValidationError as e:
            for error in e.errors:
                print(f"  - {error.field} {error.message}")

        # 4. Query
        print("\n[Step 4] Finding open tasks...")
        print("-" * 50)

        open_query = {"query": {"bool": {"must_not": [{"term": {"status": "done"}}]}}}
        async with Task.find_iterator(open_query) as cursor:
            async for task in cursor:
                print(f"  {task.id}: {task.title} (priority {task.priority})")
        print()

        # 5. Update
        print("[Step 5] Marking every open task as done...")
        print("-" * 50)

        updated = await Task.update_many(open_query, {"status": "done"})
        for task in updated:
            print(f"  - {task.title} updated at {task.updated_at}")
        print()

        # 6. Fetch
        print("[Step 6] Fetching the first task by id...")
        print("-" * 50)

        found = await Task.find_by_id(tasks[0].id)
        for key, value in found.to_dict().items():
            print(f"  {key:<12} {value}")
        print()

        # 7. Count and remove
        print("[Step 7] Counting and removing...")
        print("-" * 50)

        print(f"  Done tasks: {await Task.count({'query': {'term': {'status': 'done'}}})}")
        removed = await Task.remove_many({"query": {"match_all": {}}})
        print(f"  Removed: {removed}")
        print(f"  Remaining: {await Task.count()}")

    print()
    print("=" * 60)
    print("Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
