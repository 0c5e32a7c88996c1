"""
HitchSafe command line entry point

Maintenance commands over the configured HitchSafe database: decoding QR
payloads, distance and tracking link helpers, emergency contact management,
trip inspection, database stats and backups, and configuration export.
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from hitchsafe.core.config import ConfigurationManager
from hitchsafe.core.database import DatabaseManager
from hitchsafe.core.document_store import SQLiteDocumentStore
from hitchsafe.core.errors import HitchSafeError
from hitchsafe.core.logging import get_logger, initialize_logging
from hitchsafe.core.trip_store import load_trip
from hitchsafe.models.qr import parse_qr_payload
from hitchsafe.models.user import EmergencyContact
from hitchsafe.services.alerts.contact_alert_dispatcher import ContactAlertDispatcher
from hitchsafe.services.alerts.launchers import SystemMessagingLauncher
from hitchsafe.services.identity.user_directory import UserDirectory
from hitchsafe.services.location.location_tracker import calculate_distance
from hitchsafe.services.trip.trip_coordinator import format_duration


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='hitchsafe', description='HitchSafe maintenance tools')
    parser.add_argument('--config-dir', default='config', help='Directory holding default.yaml/config.yaml')
    subparsers = parser.add_subparsers(dest='command', required=True)

    decode_qr = subparsers.add_parser('decode-qr', help='Decode a scanned QR payload')
    decode_qr.add_argument('payload')

    distance = subparsers.add_parser('distance', help='Great-circle distance in km')
    for name in ('lat1', 'lon1', 'lat2', 'lon2'):
        distance.add_argument(name, type=float)

    track_link = subparsers.add_parser('track-link', help='Live tracking link for a trip')
    track_link.add_argument('trip_id')

    contacts = subparsers.add_parser('contacts', help='Manage emergency contacts')
    contacts_sub = contacts.add_subparsers(dest='contacts_command', required=True)
    contacts_list = contacts_sub.add_parser('list', help='List a user\'s emergency contacts')
    contacts_list.add_argument('user_id')
    contacts_add = contacts_sub.add_parser('add', help='Add an emergency contact')
    contacts_add.add_argument('user_id')
    contacts_add.add_argument('--name', required=True)
    contacts_add.add_argument('--phone', required=True)
    contacts_add.add_argument('--email')
    contacts_add.add_argument('--relationship', default='')

    trip = subparsers.add_parser('trip', help='Inspect trips')
    trip_sub = trip.add_subparsers(dest='trip_command', required=True)
    trip_show = trip_sub.add_parser('show', help='Show a trip document')
    trip_show.add_argument('trip_id')

    db = subparsers.add_parser('db', help='Database maintenance')
    db_sub = db.add_subparsers(dest='db_command', required=True)
    db_sub.add_parser('stats', help='Document counts and database size')
    db_backup = db_sub.add_parser('backup', help='Copy the live database')
    db_backup.add_argument('--output', help='Backup file; next to the database if omitted')

    config = subparsers.add_parser('config', help='Inspect the effective configuration')
    config_sub = config.add_subparsers(dest='config_command', required=True)
    config_export = config_sub.add_parser('export', help='Write the merged configuration to a file')
    config_export.add_argument('path', help='Target .yaml, .yml or .json file')

    return parser


def _print_json(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def _run_store_command(args, config: ConfigurationManager) -> int:
    database = DatabaseManager(
        config.get('database.path', 'data/hitchsafe.db'),
        config.get('database.max_connections', 10)
    )
    store = SQLiteDocumentStore(database)
    users = UserDirectory(store)

    try:
        if args.command == 'contacts' and args.contacts_command == 'list':
            contacts = await users.get_emergency_contacts(args.user_id)
            _print_json([dict(contact.to_dict(), id=contact.id) for contact in contacts])

        elif args.command == 'contacts' and args.contacts_command == 'add':
            contact = await users.add_emergency_contact(args.user_id, EmergencyContact(
                name=args.name,
                phone_number=args.phone,
                email=args.email,
                relationship=args.relationship
            ))
            print(contact.id)

        elif args.command == 'trip' and args.trip_command == 'show':
            trip = await load_trip(store, args.trip_id)
            trip_data = trip.to_dict()
            trip_data['id'] = trip.id
            end_time = trip.ended_at or trip.updated_at
            trip_data['duration'] = format_duration(end_time - trip.created_at)
            _print_json(trip_data)

        elif args.command == 'db' and args.db_command == 'stats':
            _print_json(database.get_stats())

        elif args.command == 'db' and args.db_command == 'backup':
            print(database.backup_database(args.output))

        return 0
    finally:
        database.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    # Pure helpers need no configuration
    if args.command == 'distance':
        print(f"{calculate_distance(args.lat1, args.lon1, args.lat2, args.lon2):.3f} km")
        return 0

    if args.command == 'decode-qr':
        try:
            payload = parse_qr_payload(args.payload)
        except HitchSafeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        _print_json(payload.to_dict())
        return 0

    try:
        config = ConfigurationManager(args.config_dir)
        config.load_config()
        initialize_logging(config.config)
        logger = get_logger('main')

        if args.command == 'track-link':
            dispatcher = ContactAlertDispatcher(SystemMessagingLauncher(), config.get_section('alerts'))
            print(dispatcher.build_tracking_url(args.trip_id))
            return 0

        if args.command == 'config' and args.config_command == 'export':
            config.export_config(args.path)
            print(args.path)
            return 0

        logger.debug(f"Running {args.command} against {config.get('database.path')}")
        return asyncio.run(_run_store_command(args, config))

    except (HitchSafeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
