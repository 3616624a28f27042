#!/usr/bin/env python3
"""
Main entry point for commsgraph.

Provides a command-line interface for summarizing the communications graph of
a case database.
"""
from typing import List, Optional
import argparse
import sys
import logging

from commsgraph.config import get_config
from commsgraph.database import CaseDatabase
from commsgraph.analysis import get_case_summary, get_device_activity, get_relationship_edges
from commsgraph.blackboard import ArtifactType
from commsgraph.exceptions import CommunicationsStoreError
from commsgraph.logger_config import get_log_level, parse_log_level, setup_logging
from commsgraph.utils import Colors, format_account, format_count
from commsgraph.visualization import plot_communications_by_account, plot_relationship_graph
from commsgraph.communications import (
    AccountType,
    AccountTypeFilter,
    CommunicationsFilter,
    CommunicationsManager,
    DeviceFilter,
    RelationshipTypeFilter,
    validate_case,
)


def print_section(title: str) -> None:
    """Print a formatted section title."""
    print(f"\n{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{title}{Colors.ENDC}")
    print(f"{Colors.BOLD}{Colors.HEADER}{'=' * 60}{Colors.ENDC}\n")


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Summarize accounts and communications in a case database."
    )
    parser.add_argument(
        "--case-db",
        default=None,
        help="Path to the case database (defaults to $COMMSGRAPH_CASE_DB or ~/.commsgraph/case.db).",
    )
    parser.add_argument(
        "--device",
        action="append",
        default=[],
        help="Only show accounts seen on this device (repeatable).",
    )
    parser.add_argument(
        "--account-type",
        action="append",
        default=[],
        help="Only show accounts of this type name, e.g. PHONE (repeatable).",
    )
    parser.add_argument(
        "--relationship-type",
        action="append",
        default=[],
        choices=[t.name for t in ArtifactType if t != ArtifactType.TSK_ACCOUNT],
        help="Only count communications of this artifact type (repeatable).",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Run integrity checks on the case database.",
    )
    parser.add_argument(
        "--plot",
        default=None,
        help="Write a communications-by-account chart to this HTML file.",
    )
    parser.add_argument(
        "--graph",
        default=None,
        help="Write a relationship graph to this HTML file.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to $LOG_LEVEL or INFO).",
    )
    return parser.parse_args(argv)


def _build_filter(
    manager: CommunicationsManager, args: argparse.Namespace
) -> Optional[CommunicationsFilter]:
    comm_filter = CommunicationsFilter()
    if args.device:
        comm_filter.add_and_filter(DeviceFilter(args.device))
    if args.account_type:
        account_types = []
        for type_name in args.account_type:
            account_type = manager.get_account_type(type_name)
            if account_type is None:
                print(f"{Colors.WARNING}Unknown account type: {type_name}{Colors.ENDC}")
                account_type = AccountType(type_name)
            account_types.append(account_type)
        comm_filter.add_and_filter(AccountTypeFilter(account_types))
    if args.relationship_type:
        comm_filter.add_and_filter(
            RelationshipTypeFilter([ArtifactType[name] for name in args.relationship_type])
        )
    return None if comm_filter.is_empty() else comm_filter


def main(argv: Optional[List[str]] = None):
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    setup_logging(level=parse_log_level(args.log_level, default=get_log_level()))

    config = get_config(case_db_path=args.case_db)

    if not config.validate():
        print(f"{Colors.FAIL}Error: Case database not found or not readable.{Colors.ENDC}")
        print(f"  {config.case_db_path_str}")
        sys.exit(1)

    print(f"{Colors.OKGREEN}Using case database: {config.case_db_path_str}{Colors.ENDC}")

    try:
        with CaseDatabase(config) as db:
            manager = CommunicationsManager(db)

            print_section("Case Summary")
            summary = get_case_summary(manager)
            print(f"Devices: {', '.join(summary['device_ids']) or '(none)'}")
            print(f"Accounts: {format_count(summary['account_count'])}")
            print(f"Relationships: {format_count(summary['relationship_count'])}")
            print(f"Account types in use: {', '.join(summary['account_types_in_use']) or '(none)'}")

            print(f"\n{Colors.BOLD}Row counts by table:{Colors.ENDC}")
            for table_name, count in summary["row_counts"].items():
                print(f"  {table_name:30s}: {count:>10,}")

            print_section("Relationships by Device")
            for device_id in summary["device_ids"]:
                count = manager.get_relationships_count_by_device(device_id)
                print(f"  {device_id:30s}: {count:>10,}")

            comm_filter = _build_filter(manager, args)
            print_section("Communications by Account")
            activity = get_device_activity(manager, comm_filter)
            for i, row in enumerate(activity, 1):
                account = format_account(row["account_type"], row["identifier"])
                print(
                    f"{i:3d}. {account:40s} on {row['device_id']:15s}: "
                    f"{row['communications_count']:>6,} communications"
                )

            if args.plot:
                plot_communications_by_account(activity, args.plot)
                print(f"{Colors.OKGREEN}Chart written to {args.plot}{Colors.ENDC}")

            if args.graph:
                plot_relationship_graph(get_relationship_edges(manager), args.graph)
                print(f"{Colors.OKGREEN}Graph written to {args.graph}{Colors.ENDC}")

        if args.validate:
            print_section("Integrity Checks")
            result = validate_case(config.case_db_path)
            print(result)
            if not result.passed:
                sys.exit(2)

    except CommunicationsStoreError as e:
        print(f"{Colors.FAIL}Error: {e}{Colors.ENDC}")
        logging.exception("Error during execution")
        sys.exit(1)


if __name__ == "__main__":
    main()
