# scripts/provision_capacity.py
from sqlalchemy import select

from apps.context import build_context
from apps.settings import settings
from core.utils.commands.command import Command


class ProvisionCapacityCommand(Command):
    help = "Create a pooled section or a run of numbered spots"

    def add_arguments(self, parser):
        parser.add_argument("kind", choices=["pool", "units"])
        parser.add_argument("--name", required=True, help="Pool name or unit section")
        parser.add_argument("--category", required=True, help="car, motorcycle or bicycle")
        parser.add_argument("--count", type=int, required=True, help="Capacity or number of spots")
        parser.add_argument("--area", default="")

    async def handle(self, **options):
        from apps.api.capacity.categories import normalize_category
        from apps.api.capacity.models import Pool, Unit

        context = build_context(settings)
        category = normalize_category(options["category"])
        try:
            async with context.db.session() as session:
                if options["kind"] == "pool":
                    existing = await session.scalar(select(Pool).where(Pool.name == options["name"]))
                    if existing:
                        print(f"Pool {options['name']} already exists ({existing.id})")
                        return
                    pool = Pool(
                        name=options["name"],
                        area=options["area"],
                        category=category,
                        total_capacity=options["count"],
                    )
                    session.add(pool)
                    await session.commit()
                    print(f"Created pool {pool.name} ({pool.id}) with {pool.total_capacity} slots")
                else:
                    for number in range(1, options["count"] + 1):
                        session.add(
                            Unit(
                                section=options["name"],
                                area=options["area"],
                                label=str(number),
                                category=category,
                            )
                        )
                    await session.commit()
                    print(f"Created {options['count']} spots in section {options['name']}")
        finally:
            await context.db.dispose()
