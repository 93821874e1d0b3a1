# dr_core/resources/management/commands/metadata_cache.py

from django.core.management.base import BaseCommand, CommandError

from dr_core.cache.metadata import metadata_cache
from dr_core.resources.exceptions import UnknownResource
from dr_core.resources.registry import registry

ACTIONS = ("warm", "clear", "status")


class Command(BaseCommand):
    help = "Manage the resource metadata cache (warm, clear or status)."

    def add_arguments(self, parser):
        parser.add_argument("action", choices=ACTIONS)
        parser.add_argument("--resource", dest="resource", help="Only target this resource slug.")
        parser.add_argument("--tenant", dest="tenant", help="Only clear entries of this tenant id.")
        parser.add_argument(
            "--noinput",
            "--no-input",
            action="store_false",
            dest="interactive",
            help="Do not ask for confirmation before clearing everything.",
        )

    def handle(self, *args, **options):
        action = options["action"]
        if action == "warm":
            return self._warm(options)
        if action == "clear":
            return self._clear(options)
        return self._status()

    def _warm(self, options):
        slug = options.get("resource")
        if slug:
            try:
                model = registry.resolve(slug)
            except UnknownResource as exc:
                raise CommandError(f"Unknown resource '{slug}'.") from exc
            metadata_cache.warm_resource(model)
            self.stdout.write(self.style.SUCCESS(f"Warmed metadata for resource: {slug}"))
            return

        warmed = []
        for slug, model in registry.all().items():
            try:
                metadata_cache.warm_resource(model)
                warmed.append(slug)
            except Exception as exc:
                self.stderr.write(self.style.WARNING(f"Failed to warm {slug}: {exc}"))
        self.stdout.write(self.style.SUCCESS(f"Warmed metadata for {len(warmed)} resource(s)."))

    def _clear(self, options):
        slug = options.get("resource")
        tenant_id = options.get("tenant")

        if slug:
            metadata_cache.invalidate_resource(slug)
            self.stdout.write(self.style.SUCCESS(f"Cleared metadata for resource: {slug}"))
            return
        if tenant_id:
            metadata_cache.invalidate_tenant(tenant_id)
            self.stdout.write(self.style.SUCCESS(f"Cleared metadata for tenant: {tenant_id}"))
            return

        if options.get("interactive", True):
            answer = input("Clear ALL metadata cache? [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                self.stdout.write("Cancelled.")
                return

        metadata_cache.invalidate_all()
        self.stdout.write(self.style.SUCCESS("Cleared all metadata cache."))

    def _status(self):
        stats = metadata_cache.stats()
        rows = [
            ("Enabled", "yes" if stats["enabled"] else "no"),
            ("Driver", stats.get("driver", "unknown")),
            ("Supports tagging", "yes" if stats.get("supports_tags") else "no"),
            ("TTL", f"{stats['ttl']} seconds"),
            ("Prefix", stats["prefix"]),
            ("Registered resources", str(len(registry.slugs()))),
        ]
        width = max(len(label) for label, _ in rows)
        self.stdout.write("Metadata cache status")
        for label, value in rows:
            self.stdout.write(f"  {label.ljust(width)}  {value}")
