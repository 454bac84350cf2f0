"""
netric CLI - Command-line interface.

This layer provides the user-facing CLI commands, using the SDK layer
for all operations. It handles:
- Argument parsing
- TTY detection for human vs machine output
- Pretty formatting for human output
- JSON output for piping/automation
"""

import argparse
import json
import logging
import sys
from typing import Any

from netric_cli.core.client import CLIError, ValidationError
from netric_cli.core.types import Entity, EntityCollection, EntityGrouping
from netric_cli.sdk import ApiCaller

# =============================================================================
# Output Helpers
# =============================================================================


HUMAN_LIMIT = 20  # Default limit for human-readable output


def is_tty() -> bool:
    """Check if stdout is a TTY (human) or pipe (machine)."""
    return sys.stdout.isatty()


def json_output(data: Any, pretty: bool = False) -> None:
    """Print JSON output."""
    indent = 2 if pretty or is_tty() else None
    print(json.dumps(data, indent=indent, default=str))


def error_output(error: CLIError) -> None:
    """Print error and exit."""
    json_output(error.to_dict())
    sys.exit(1)


def success_output(data: Any) -> None:
    """Print success output."""
    json_output(data)


def table_output(
    headers: list[str],
    rows: list[list[str]],
    widths: list[int],
) -> None:
    """Print a formatted table for human output."""
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    print(header_line)
    print("-" * len(header_line))

    for row in rows:
        print("  ".join(str(v)[:w].ljust(w) for v, w in zip(row, widths)))


def entity_output(entity: Entity) -> dict[str, Any]:
    """Convert an entity to a JSON-friendly dict."""
    return entity.to_dict()


def grouping_output(grouping: EntityGrouping) -> dict[str, Any]:
    """Convert a grouping tree to a JSON-friendly dict."""
    data = dict(grouping.values)
    data["children"] = [grouping_output(child) for child in grouping.children]
    return data


def parse_fields(raw: str) -> dict[str, Any]:
    """Parse a JSON object from an argument, or from stdin when raw is '-'."""
    try:
        fields = json.load(sys.stdin) if raw == "-" else json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in --fields: {e}")
    if not isinstance(fields, dict):
        raise ValidationError("--fields must be a JSON object")
    return fields


def parse_where(raw: str) -> tuple[str, str, Any]:
    """Parse FIELD:OPERATOR:VALUE; VALUE is decoded as JSON when possible."""
    parts = raw.split(":", 2)
    if len(parts) != 3 or not parts[0] or not parts[1]:
        raise ValidationError(f"Invalid --where '{raw}', expected FIELD:OPERATOR:VALUE")
    field_name, operator, value = parts
    try:
        return field_name, operator, json.loads(value)
    except json.JSONDecodeError:
        return field_name, operator, value


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_ent_get(client: ApiCaller, args: argparse.Namespace) -> None:
    """Get an entity by ID."""
    try:
        entity = client.get_entity(args.obj_type, args.entity_id)
        if entity is None:
            raise CLIError(f"{args.obj_type} {args.entity_id} not found")

        if args.field:
            # Extract specific field value
            if args.field not in entity.values:
                raise ValidationError(
                    f"Field '{args.field}' not found",
                    details={"available_fields": list(entity.values.keys())},
                )
            value = entity.get_value(args.field)
            if isinstance(value, (dict, list)):
                json_output(value)
            else:
                print(value if value is not None else "")
        else:
            success_output(entity_output(entity))
    except CLIError as e:
        error_output(e)


def cmd_ent_find(client: ApiCaller, args: argparse.Namespace) -> None:
    """Get an entity by unique name."""
    try:
        entity = client.get_entity_by_unique_name(args.obj_type, args.uname)
        if entity is None:
            raise CLIError(f"{args.obj_type} '{args.uname}' not found")
        success_output(entity_output(entity))
    except CLIError as e:
        error_output(e)


def cmd_ent_save(client: ApiCaller, args: argparse.Namespace) -> None:
    """Create or update an entity."""
    try:
        fields = parse_fields(args.fields) if args.fields else {}
        entity = Entity.create(args.obj_type, id=args.entity_id or "")
        entity.update_from(fields)

        if not client.save_entity(entity):
            raise CLIError(f"Could not save {args.obj_type}")
        success_output(
            {
                "id": entity.id,
                "obj_type": entity.obj_type,
                "message": "Entity saved",
            }
        )
    except CLIError as e:
        error_output(e)


def cmd_ent_delete(client: ApiCaller, args: argparse.Namespace) -> None:
    """Delete an entity."""
    try:
        entity = Entity.create(args.obj_type, id=args.entity_id)
        if not client.delete_entity(entity):
            raise CLIError(f"{args.obj_type} {args.entity_id} was not deleted")
        success_output({"success": True, "message": f"Entity {args.entity_id} deleted"})
    except CLIError as e:
        error_output(e)


def cmd_groupings(client: ApiCaller, args: argparse.Namespace) -> None:
    """Show the grouping tree for a field."""
    try:
        groupings = client.get_entity_groupings(args.obj_type, args.field_name)

        if is_tty():
            if not groupings:
                print("No groupings found.")
                return
            for root in groupings:
                for depth, grouping in root.walk():
                    print(f"{'  ' * depth}{grouping.name} ({grouping.id})")
        else:
            success_output({"data": [grouping_output(g) for g in groupings]})
    except CLIError as e:
        error_output(e)


def cmd_query(client: ApiCaller, args: argparse.Namespace) -> None:
    """Query entities of a type."""
    try:
        limit = args.limit if args.limit is not None else (HUMAN_LIMIT if is_tty() else 100)
        collection = EntityCollection(args.obj_type, offset=args.offset or 0, limit=limit)
        for raw in args.where or []:
            collection.where(*parse_where(raw))
        for raw in args.order_by or []:
            field_name, _, direction = raw.partition(":")
            collection.order(field_name, direction or "asc")

        if args.all:
            entities = list(client.iterate_collection(collection))
        else:
            client.load_collection(collection)
            entities = collection.entities

        if is_tty():
            if not entities:
                print("No entities found.")
                return

            table_output(
                ["ID", "Name"],
                [[e.id, str(e.get_value("name") or "(unnamed)")[:50]] for e in entities],
                [36, 50],
            )

            if not args.all and collection.has_more:
                print(f"\nShowing {len(entities)} of {collection.total_num} entities")
        else:
            success_output(
                {
                    "data": [entity_output(e) for e in entities],
                    "total_num": collection.total_num,
                }
            )
    except CLIError as e:
        error_output(e)


# =============================================================================
# Argument Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        description="netric CLI - Command-line interface for the netric entity API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Output Modes:
  TTY (human):  Pretty tables, limited rows
  Pipe:         Full JSON

Examples:
  netric ent get task 42
  netric ent save task --fields '{"name": "Write report"}'
  netric groupings task status_id
  netric query task --where done:is_equal:false --order-by ts_entered:desc | jq '.data[].id'
""",
    )
    parser.add_argument("--server", "-s", help="Server URL (overrides NETRIC_SERVER)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests to stderr")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ========== Entities ==========
    ent = subparsers.add_parser("ent", help="Manage entities")
    ent.set_defaults(func=lambda _c, _a: ent.print_help())
    ent_sub = ent.add_subparsers(dest="subcommand")

    e_get = ent_sub.add_parser("get", help="Get entity details")
    e_get.add_argument("obj_type", help="Object type")
    e_get.add_argument("entity_id", help="Entity ID")
    e_get.add_argument("--field", "-f", help="Extract specific field value")
    e_get.set_defaults(func=cmd_ent_get)

    e_find = ent_sub.add_parser("find", help="Get entity by unique name")
    e_find.add_argument("obj_type", help="Object type")
    e_find.add_argument("uname", help="Unique name")
    e_find.set_defaults(func=cmd_ent_find)

    e_save = ent_sub.add_parser("save", help="Create or update an entity")
    e_save.add_argument("obj_type", help="Object type")
    e_save.add_argument("--id", dest="entity_id", help="Entity ID to update (omit to create)")
    e_save.add_argument("--fields", "-f", help="JSON object with field values (or - for stdin)")
    e_save.set_defaults(func=cmd_ent_save)

    e_delete = ent_sub.add_parser("delete", help="Delete an entity")
    e_delete.add_argument("obj_type", help="Object type")
    e_delete.add_argument("entity_id", help="Entity ID")
    e_delete.set_defaults(func=cmd_ent_delete)

    # ========== Groupings ==========
    groupings = subparsers.add_parser("groupings", help="Show the grouping tree for a field")
    groupings.add_argument("obj_type", help="Object type")
    groupings.add_argument("field_name", help="Grouping field name")
    groupings.set_defaults(func=cmd_groupings)

    # ========== Query ==========
    query = subparsers.add_parser("query", help="Query entities")
    query.add_argument("obj_type", help="Object type")
    query.add_argument("--where", "-w", action="append", help="Condition as FIELD:OPERATOR:VALUE (repeatable)")
    query.add_argument("--order-by", "-O", action="append", help="Sort as FIELD or FIELD:desc (repeatable)")
    query.add_argument("--limit", "-l", type=int, help="Page size")
    query.add_argument("--offset", "-o", type=int, help="Offset for pagination")
    query.add_argument("--all", "-a", action="store_true", help="Load every page")
    query.set_defaults(func=cmd_query)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    # Create client
    client = ApiCaller(server=args.server)

    # Run command (all subparsers have default funcs that print help)
    args.func(client, args)


if __name__ == "__main__":
    main()
