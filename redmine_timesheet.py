#!/usr/bin/env python3
"""
Redmine Timesheet Automation
============================

Spreads estimated hours for your assigned Redmine issues across the
remaining workdays of the month and logs them as time entries.

Features:
- Fetches assigned issues for the current reporting period
- Distributes estimates over workdays (8h/day cap, quarter-hour entries)
- Previews the plan day by day before anything is written
- Submits entries one at a time and reports the ones that failed
"""

import os
import sys
import math
import json
import logging
import argparse
import calendar
from dataclasses import dataclass, field
from datetime import datetime, timedelta, date
from pathlib import Path
import requests
from typing import Dict, List, Optional, Tuple

from time_distribution import (
    MAX_HOURS_PER_DAY,
    MIN_HOURS_PER_ENTRY,
    EstimationInput,
    IssueRef,
    TimeEntryAllocation,
    daily_breakdown,
    distribute,
    end_of_month,
    find_shortfalls,
    total_hours,
    workdays,
)


class DualWriter:
    """Writes to both the console (original stdout) and an external log file."""

    def __init__(self, console, logfile_path: str):
        self.console = console
        self.logfile = open(logfile_path, 'a', encoding='utf-8')

    def write(self, text):
        self.console.write(text)
        self.logfile.write(text)
        self.logfile.flush()

    def flush(self):
        self.console.flush()
        self.logfile.flush()

    def close(self):
        self.logfile.close()

# ============================================================================
# CONFIGURATION
# ============================================================================

SCRIPT_DIR = Path(__file__).parent
CONFIG_FILE = SCRIPT_DIR / "config.json"
LOG_FILE = SCRIPT_DIR / "redmine_timesheet.log"

REQUEST_TIMEOUT = 30
ISSUE_LIMIT = 100

logger = logging.getLogger(__name__)


def setup_logging(log_file: Path = LOG_FILE, level: int = logging.INFO):
    """Log to file and stdout. Called once from main()."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )


class ConfigError(Exception):
    """Missing or invalid configuration."""


class RedmineError(Exception):
    """A request to Redmine failed or returned unusable data."""


# ============================================================================
# CONFIGURATION MANAGER
# ============================================================================

def default_config(url: str = '', api_key: str = '',
                   daily_hours: float = MAX_HOURS_PER_DAY) -> Dict:
    return {
        "redmine": {
            "url": url,
            "api_key": api_key
        },
        "schedule": {
            "daily_hours": daily_hours,
            "min_entry_hours": MIN_HOURS_PER_ENTRY
        },
        "options": {
            "default_activity_id": None,
            "require_confirmation": True
        }
    }


class ConfigManager:
    """Manages user configuration and the stored API key."""

    def __init__(self, config_path: Path = CONFIG_FILE, load: bool = True):
        self.config_path = Path(config_path)
        self.config = self.load_config() if load else {}

    def load_config(self) -> Dict:
        """Load configuration from file, environment, or the setup wizard."""
        if not self.config_path.exists():
            if os.environ.get('REDMINE_URL') and os.environ.get('REDMINE_API_KEY'):
                logger.info("No configuration file, using environment")
                return default_config()
            logger.info("No configuration found. Starting setup wizard...")
            return self.setup_wizard()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading configuration: {e}")
            raise ConfigError(
                f"Could not read {self.config_path}: {e}"
            ) from e

        # Fill sections added after the file was written
        merged = default_config()
        for section, values in config.items():
            if isinstance(values, dict) and section in merged:
                merged[section].update(values)
            else:
                merged[section] = values
        logger.info("Configuration loaded successfully")
        return merged

    def setup_wizard(self) -> Dict:
        """Interactive setup wizard for first-time configuration."""
        print("\n" + "="*60)
        print("REDMINE TIMESHEET - FIRST TIME SETUP")
        print("="*60)
        print("\nYour API key is stored locally in "
              f"{self.config_path.name}.\n")

        print("--- REDMINE CONFIGURATION ---")
        url = input(
            "Redmine URL (e.g. https://redmine.example.com): "
        ).strip().rstrip('/')

        print("\n[INFO] To get your Redmine API key:")
        print("   1. Open 'My account' in Redmine")
        print("   2. Click 'Show' under 'API access key'")
        api_key = input("\nEnter your Redmine API key: ").strip()

        print("\n--- WORK SCHEDULE ---")
        daily_hours = float(
            input(f"Maximum hours per day (default {MAX_HOURS_PER_DAY:g}): ").strip()
            or MAX_HOURS_PER_DAY
        )

        config = default_config(url, api_key, daily_hours)
        self.save_config(config)

        print("\n" + "="*60)
        print("[OK] SETUP COMPLETE!")
        print("="*60)
        print(f"\nConfiguration saved to: {self.config_path}")
        print("You can edit this file manually if needed.\n")

        return config

    def save_config(self, config: Dict):
        """Save configuration to file."""
        try:
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(config, f, indent=2)
            logger.info("Configuration saved successfully")
        except OSError as e:
            logger.error(f"Error saving configuration: {e}")
            raise

    def get_redmine_config(self) -> Dict:
        """
        Resolve the Redmine endpoint and API key.

        REDMINE_URL / REDMINE_API_KEY take precedence over the file.

        Raises:
            ConfigError: if either value is missing
        """
        redmine = self.config.get('redmine', {})
        url = os.environ.get('REDMINE_URL') or redmine.get('url', '')
        api_key = os.environ.get('REDMINE_API_KEY') or redmine.get('api_key', '')

        if not url:
            raise ConfigError(
                "Redmine URL is required (config.json or REDMINE_URL)"
            )
        if not api_key:
            raise ConfigError(
                "Redmine API key is required. Run --setup to add one."
            )
        return {'url': url.rstrip('/'), 'api_key': api_key}

    def set_api_key(self, api_key: str):
        self.config.setdefault('redmine', {})['api_key'] = api_key
        self.save_config(self.config)

    def clear_api_key(self):
        """Forget the stored API key (logout)."""
        self.set_api_key('')
        logger.info("Stored API key removed")

    @property
    def daily_hours(self) -> float:
        return float(self.config.get('schedule', {}).get(
            'daily_hours', MAX_HOURS_PER_DAY
        ))

    @property
    def min_entry_hours(self) -> float:
        return float(self.config.get('schedule', {}).get(
            'min_entry_hours', MIN_HOURS_PER_ENTRY
        ))


# ============================================================================
# REDMINE RECORDS
# ============================================================================

@dataclass(frozen=True)
class Activity:
    """A time entry activity (Redmine's classification of logged time)."""
    id: int
    name: str
    is_default: bool = False

    @classmethod
    def from_api(cls, record) -> 'Activity':
        if not isinstance(record, dict):
            raise RedmineError(f"Malformed time entry activity: {record!r}")
        activity_id = record.get('id')
        name = record.get('name')
        if not isinstance(activity_id, int) or not isinstance(name, str):
            raise RedmineError(f"Malformed time entry activity: {record!r}")
        return cls(activity_id, name, bool(record.get('is_default', False)))


@dataclass
class SubmissionResult:
    """Outcome of a best-effort batch submission."""
    created: List[Dict] = field(default_factory=list)
    failed: List[Tuple[Dict, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def resolve_activity(activities: List[Activity],
                     requested_id: Optional[int] = None) -> Optional[Activity]:
    """
    Pick the activity to log time against.

    Priority: requested id -> Redmine's default -> first listed.
    Returns None when there are no activities.
    """
    if requested_id is not None:
        for activity in activities:
            if activity.id == requested_id:
                return activity
        logger.warning(
            f"Activity {requested_id} not available, using default"
        )
    for activity in activities:
        if activity.is_default:
            return activity
    return activities[0] if activities else None


def to_time_entry_payloads(allocations: List[TimeEntryAllocation],
                           activity_id: Optional[int] = None) -> List[Dict]:
    """Flatten allocations into Redmine time_entry payloads."""
    payloads = []
    for allocation in allocations:
        for entry in allocation.entries:
            payload = {
                'issue_id': allocation.issue.id,
                'spent_on': entry.date.isoformat(),
                'hours': entry.hours,
                'comments': entry.comments
            }
            if activity_id is not None:
                payload['activity_id'] = activity_id
            payloads.append(payload)
    return payloads


# ============================================================================
# REDMINE API CLIENT
# ============================================================================

class RedmineClient:
    """Handles Redmine REST API interactions."""

    def __init__(self, config: Dict):
        self.base_url = config['url'].rstrip('/')
        self.session = requests.Session()
        self.session.headers.update({
            'X-Redmine-API-Key': config['api_key'],
            'Content-Type': 'application/json'
        })
        self._user = None

    def _get(self, path: str, action: str, params: Dict = None) -> Dict:
        try:
            response = self.session.get(
                f"{self.base_url}{path}", params=params,
                timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error trying to {action}: {e}")
            raise RedmineError(f"Failed to {action}: {e}") from e

    def get_current_user(self) -> Dict:
        """Get the user the API key belongs to (cached per client)."""
        if self._user is None:
            self._user = self._get(
                '/users/current.json', 'get current user'
            )['user']
            logger.info(f"Redmine user: {self._user.get('login', self._user.get('id'))}")
        return self._user

    def get_all_open_issues(self) -> List[Dict]:
        """Fetch open issues assigned to the current user."""
        params = {
            'assigned_to_id': self.get_current_user()['id'],
            'status_id': 'open',
            'limit': ISSUE_LIMIT
        }
        issues = self._get(
            '/issues.json', 'fetch open issues', params
        ).get('issues', [])
        logger.info(f"Found {len(issues)} open issues")
        return issues

    def get_issues_from_date_range(self, start: date, end: date) -> List[Dict]:
        """
        Fetch issues assigned to the current user created in a range.

        Args:
            start: First creation date (inclusive)
            end: Last creation date (inclusive)

        Returns:
            List of issue dictionaries, any status
        """
        params = {
            'assigned_to_id': self.get_current_user()['id'],
            'limit': ISSUE_LIMIT,
            'created_on': f"><{start.isoformat()}|{end.isoformat()}"
        }
        issues = self._get(
            '/issues.json', 'fetch issues from date range', params
        ).get('issues', [])
        logger.info(
            f"Found {len(issues)} issues created {start} to {end}"
        )
        return issues

    def get_issues_for_current_month(self, today: date = None) -> List[Dict]:
        """
        Fetch the issues relevant to this month's timesheet.

        Open issues plus everything created from the start of last month
        through the end of this month, deduplicated by id and sorted
        newest first.
        """
        today = today or date.today()
        start_of_last_month = (
            today.replace(day=1) - timedelta(days=1)
        ).replace(day=1)

        open_issues = self.get_all_open_issues()
        range_issues = self.get_issues_from_date_range(
            start_of_last_month, end_of_month(today)
        )

        by_id = {}
        for issue in open_issues + range_issues:
            by_id[issue['id']] = issue

        return sorted(
            by_id.values(),
            key=lambda i: i.get('created_on', ''),
            reverse=True
        )

    def get_time_entries_for_issue(self, issue_id: int) -> List[Dict]:
        params = {'issue_id': issue_id, 'limit': ISSUE_LIMIT}
        return self._get(
            '/time_entries.json',
            f"fetch time entries for issue {issue_id}", params
        ).get('time_entries', [])

    def get_spent_hours(self, issue_id: int) -> float:
        """Hours already logged on an issue; 0 if they can't be fetched."""
        try:
            entries = self.get_time_entries_for_issue(issue_id)
        except RedmineError as e:
            logger.error(f"Spent hours unavailable for #{issue_id}: {e}")
            return 0.0
        return sum(e.get('hours') or 0 for e in entries)

    def get_time_entry_activities(self) -> List[Activity]:
        records = self._get(
            '/enumerations/time_entry_activities.json',
            'fetch time entry activities'
        ).get('time_entry_activities', [])
        return [Activity.from_api(r) for r in records]

    def create_time_entry(self, payload: Dict) -> Dict:
        """
        Create a single time entry.

        Raises:
            RedmineError: if the request fails
        """
        try:
            response = self.session.post(
                f"{self.base_url}/time_entries.json",
                json={'time_entry': payload},
                timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            created = response.json().get('time_entry', {})
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Error creating time entry for #{payload.get('issue_id')}: {e}"
            )
            raise RedmineError(f"Failed to create time entry: {e}") from e

        logger.info(
            f"Created time entry: #{payload.get('issue_id')} - "
            f"{payload.get('hours')}h on {payload.get('spent_on')}"
        )
        return created

    def create_time_entries(self, payloads: List[Dict]) -> SubmissionResult:
        """Create entries one by one, continuing past failures."""
        result = SubmissionResult()
        for payload in payloads:
            try:
                result.created.append(self.create_time_entry(payload))
            except RedmineError as e:
                result.failed.append((payload, str(e)))

        if result.failed:
            logger.error(
                f"{len(result.failed)} of {len(payloads)} time entries "
                f"failed to create"
            )
        return result

    def test_connection(self) -> bool:
        try:
            self.get_current_user()
            return True
        except RedmineError:
            return False


# ============================================================================
# SCHEDULE
# ============================================================================

def schedule_daily_hours(config_path: Path = CONFIG_FILE) -> float:
    """Configured hours per day, or the default when not set up yet."""
    if not Path(config_path).exists():
        return MAX_HOURS_PER_DAY
    return ConfigManager(config_path).daily_hours


def print_month_schedule(month_str: str = 'current',
                         daily_hours: float = MAX_HOURS_PER_DAY):
    """Print a month calendar with workdays and capacity."""
    try:
        if month_str == 'current':
            first = date.today().replace(day=1)
        else:
            parts = month_str.split('-')
            first = date(int(parts[0]), int(parts[1]), 1)
    except (ValueError, IndexError):
        print(f"[ERROR] Invalid month format: {month_str}")
        print("        Use YYYY-MM (e.g., 2026-03)")
        return

    last = end_of_month(first)
    days = workdays(first, last)

    print(f"\n{calendar.month_name[first.month]} {first.year}")
    print("=" * 48)
    print("Mon  Tue  Wed  Thu  Fri  | Sat  Sun")

    # Pad first week
    line_dates = '     ' * first.weekday()
    line_labels = '     ' * first.weekday()

    current = first
    while current <= last:
        # Separator before Sat column
        if current.weekday() == 5:
            line_dates += '| '
            line_labels += '| '

        line_dates += f"{current.day:>2}   "
        line_labels += f"{'W' if current.weekday() < 5 else '.':>2}   "

        if current.weekday() == 6 or current == last:
            print(line_dates.rstrip())
            print(line_labels.rstrip())
            line_dates = ''
            line_labels = ''
        current += timedelta(days=1)

    print()
    print("Legend: W=Working  .=Weekend")
    print()
    print(
        f"  Working days: {len(days)}  |  "
        f"Capacity: {len(days) * daily_hours:.1f}h"
    )
    print()


# ============================================================================
# AUTOMATION ENGINE
# ============================================================================

class TimesheetAutomation:
    """Fetch issues, plan the distribution, preview and submit."""

    def __init__(self, config_path: Path = CONFIG_FILE,
                 client: RedmineClient = None):
        self.config_manager = ConfigManager(config_path)
        self.config = self.config_manager.config
        self.client = client or RedmineClient(
            self.config_manager.get_redmine_config()
        )

    # ------------------------------------------------------------------
    # Issues and activities
    # ------------------------------------------------------------------

    def fetch_issues(self) -> List[Dict]:
        """Current-month issues, each with its 'spent_hours' filled in."""
        issues = self.client.get_issues_for_current_month()
        for issue in issues:
            issue['spent_hours'] = self.client.get_spent_hours(issue['id'])
        return issues

    def list_issues(self) -> List[Dict]:
        issues = self.fetch_issues()
        print(f"\nFound {len(issues)} issue(s):")
        for issue in issues:
            project = issue.get('project', {}).get('name', '')
            status = issue.get('status', {}).get('name', '')
            print(
                f"  #{issue['id']:<6} [{status}] {issue['subject']}"
                f"  ({project}, spent {issue['spent_hours']:.2f}h)"
            )
        print()
        return issues

    def list_activities(self) -> List[Activity]:
        activities = self.client.get_time_entry_activities()
        print("\nTime entry activities:")
        for activity in activities:
            marker = ' (default)' if activity.is_default else ''
            print(f"  {activity.id:>4}  {activity.name}{marker}")
        print()
        return activities

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def collect_estimates(self, issues: List[Dict]) -> Dict[int, float]:
        """Prompt for hours per issue. Blank input skips the issue."""
        print("\nEnter estimated hours per issue (Enter to skip):")
        estimates = {}
        for issue in issues:
            while True:
                raw = input(f"  #{issue['id']} {issue['subject']}: ").strip()
                if not raw:
                    break
                try:
                    hours = float(raw)
                except ValueError:
                    print("    Please enter a number of hours.")
                    continue
                if not math.isfinite(hours) or hours < 0:
                    print("    Hours must be a non-negative number.")
                    continue
                estimates[issue['id']] = hours
                break
        return estimates

    def build_items(self, issues: List[Dict],
                    estimates: Dict[int, float]) -> List[EstimationInput]:
        """Pair fetched issues with estimates, in issue order."""
        known = {issue['id'] for issue in issues}
        for issue_id in estimates:
            if issue_id not in known:
                logger.warning(
                    f"Issue #{issue_id} is not in this month's issues, skipping"
                )
        return [
            EstimationInput(
                IssueRef(issue['id'], issue['subject']),
                estimates[issue['id']]
            )
            for issue in issues
            if estimates.get(issue['id'], 0) > 0
        ]

    def plan(self, items: List[EstimationInput], start: date = None,
             end: date = None) -> List[TimeEntryAllocation]:
        start = start or date.today()
        end = end or end_of_month(start)
        days = workdays(start, end)
        logger.info(
            f"Planning {len(items)} issue(s) over {len(days)} workday(s) "
            f"({start} to {end})"
        )
        return distribute(
            items, days,
            daily_cap=self.config_manager.daily_hours,
            min_entry=self.config_manager.min_entry_hours
        )

    def preview(self, items: List[EstimationInput],
                allocations: List[TimeEntryAllocation]):
        """Print per-issue entries, the daily breakdown and shortfalls."""
        print(f"\n{'='*60}")
        print("TIME ENTRY PREVIEW")
        print(f"{'='*60}\n")

        for allocation in allocations:
            print(
                f"#{allocation.issue.id} {allocation.issue.subject} "
                f"({allocation.allocated_hours:.2f}h of "
                f"{allocation.estimated_hours:.2f}h)"
            )
            for entry in allocation.entries:
                print(f"    {entry.date.isoformat()}  {entry.hours:>5.2f}h")

        print("\nDaily breakdown:")
        for day, day_alloc in daily_breakdown(allocations).items():
            issues = ', '.join(f"#{e.issue_id}" for e in day_alloc.entries)
            print(
                f"  {day.strftime('%a %Y-%m-%d')}  "
                f"{day_alloc.total_hours:>5.2f}h  {issues}"
            )

        print(f"\nTotal: {total_hours(allocations):.2f}h")

        for shortfall in find_shortfalls(items, allocations):
            print(
                f"[!] #{shortfall.issue.id}: only "
                f"{shortfall.allocated_hours:.2f}h of "
                f"{shortfall.requested_hours:.2f}h fit "
                f"({shortfall.missing_hours:.2f}h not scheduled)"
            )
        print()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, allocations: List[TimeEntryAllocation],
               activity_id: Optional[int] = None) -> SubmissionResult:
        """Create all planned entries, reporting failures individually."""
        if activity_id is None:
            activity_id = self.config.get('options', {}).get(
                'default_activity_id'
            )
        try:
            activity = resolve_activity(
                self.client.get_time_entry_activities(), activity_id
            )
        except RedmineError as e:
            logger.warning(
                f"Could not fetch activities, proceeding without: {e}"
            )
            activity = None

        if activity:
            print(f"Activity: {activity.name}")
        payloads = to_time_entry_payloads(
            allocations, activity.id if activity else None
        )
        result = self.client.create_time_entries(payloads)

        for created in result.created:
            print(
                f"  [OK] #{created.get('issue', {}).get('id', '?')} "
                f"{created.get('hours')}h on {created.get('spent_on')}"
            )
        for payload, reason in result.failed:
            print(
                f"  [FAIL] #{payload['issue_id']} {payload['hours']}h on "
                f"{payload['spent_on']}: {reason}"
            )

        print(
            f"\nCreated {len(result.created)} of {len(payloads)} "
            f"time entries"
        )
        logger.info(
            f"Submission finished: {len(result.created)} created, "
            f"{len(result.failed)} failed"
        )
        return result

    def _confirm(self, allocations: List[TimeEntryAllocation]) -> bool:
        count = sum(len(a.entries) for a in allocations)
        answer = input(
            f"Submit {count} time entries ({total_hours(allocations):.2f}h) "
            f"to Redmine? (yes/no): "
        ).strip().lower()
        return answer in ['yes', 'y']

    def run(self, estimates: Dict[int, float] = None, start: date = None,
            end: date = None, activity_id: Optional[int] = None,
            assume_yes: bool = False,
            dry_run: bool = False) -> Optional[SubmissionResult]:
        """Plan, preview and (after confirmation) submit time entries."""
        issues = self.fetch_issues()
        if not issues:
            print("[!] No issues found for this month.")
            return None

        if estimates is None:
            estimates = self.collect_estimates(issues)

        items = self.build_items(issues, estimates)
        if not items:
            print("[!] No estimated hours entered. Nothing to do.")
            return None

        allocations = self.plan(items, start, end)
        if not allocations:
            print("[!] No workday has room for these estimates.")
            return None

        self.preview(items, allocations)

        if dry_run:
            print("[INFO] Dry run -- nothing submitted.")
            return None

        require = self.config.get('options', {}).get(
            'require_confirmation', True
        )
        if require and not assume_yes and not self._confirm(allocations):
            print("[SKIP] Submission cancelled")
            logger.info("Submission cancelled by user")
            return None

        return self.submit(allocations, activity_id)


# ============================================================================
# COMMAND LINE INTERFACE
# ============================================================================

def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}', use YYYY-MM-DD"
        )


def parse_estimate(value: str) -> Tuple[int, float]:
    """Parse 'ISSUE_ID=HOURS' (e.g. '1234=6.5')."""
    try:
        issue_id, hours = value.split('=', 1)
        issue_id, hours = int(issue_id.strip().lstrip('#')), float(hours)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid estimate '{value}', use ISSUE_ID=HOURS"
        )
    if not math.isfinite(hours) or hours < 0:
        raise argparse.ArgumentTypeError(
            f"Estimate for #{issue_id} must be a non-negative number"
        )
    return issue_id, hours


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Redmine Timesheet Automation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python redmine_timesheet.py                        # Interactive plan & submit
  python redmine_timesheet.py --estimate 1234=10 --estimate 1240=4
  python redmine_timesheet.py --estimate 1234=10 --dry-run
  python redmine_timesheet.py --from 2026-03-02 --to 2026-03-13
  python redmine_timesheet.py --list-issues
  python redmine_timesheet.py --list-activities
  python redmine_timesheet.py --show-schedule 2026-03
  python redmine_timesheet.py --setup                # Run setup wizard again
  python redmine_timesheet.py --logout               # Forget stored API key
        """
    )

    # Planning
    parser.add_argument(
        '--estimate', type=parse_estimate, action='append',
        metavar='ID=HOURS',
        help='Estimated hours for an issue (repeatable)'
    )
    parser.add_argument(
        '--from', dest='start', type=parse_date, metavar='YYYY-MM-DD',
        help='First day to schedule (default: today)'
    )
    parser.add_argument(
        '--to', dest='end', type=parse_date, metavar='YYYY-MM-DD',
        help='Last day to schedule (default: end of month)'
    )
    parser.add_argument(
        '--activity', type=int, metavar='ID',
        help='Time entry activity id (default: Redmine default)'
    )
    parser.add_argument(
        '--dry-run', action='store_true',
        help='Preview the distribution without submitting'
    )
    parser.add_argument(
        '--yes', action='store_true',
        help='Submit without asking for confirmation'
    )

    # Information
    parser.add_argument(
        '--list-issues', action='store_true',
        help='List this month\'s issues'
    )
    parser.add_argument(
        '--list-activities', action='store_true',
        help='List time entry activities'
    )
    parser.add_argument(
        '--show-schedule', nargs='?', const='current',
        metavar='YYYY-MM',
        help='Show month schedule calendar (default: current month)'
    )
    parser.add_argument(
        '--test-connection', action='store_true',
        help='Check the Redmine URL and API key'
    )

    # Setup
    parser.add_argument(
        '--setup', action='store_true',
        help='Run setup wizard'
    )
    parser.add_argument(
        '--logout', action='store_true',
        help='Remove the stored API key'
    )
    parser.add_argument(
        '--logfile', type=str,
        help='Also write output to this log file (appends)'
    )
    return parser


def main(argv: List[str] = None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    setup_logging()

    # Set up dual output if --logfile is provided
    if args.logfile:
        sys.stdout = DualWriter(sys.stdout, args.logfile)

    try:
        if args.setup:
            ConfigManager(CONFIG_FILE, load=False).setup_wizard()
            return

        if args.logout:
            if CONFIG_FILE.exists():
                ConfigManager(CONFIG_FILE).clear_api_key()
            print("[OK] API key removed")
            return

        # Schedule display needs no Redmine connection
        if args.show_schedule is not None:
            print_month_schedule(
                args.show_schedule, schedule_daily_hours(CONFIG_FILE)
            )
            return

        automation = TimesheetAutomation()

        if args.test_connection:
            if automation.client.test_connection():
                print("[OK] Connected to Redmine")
            else:
                print("[FAIL] Invalid credentials or endpoint")
                sys.exit(1)
        elif args.list_issues:
            automation.list_issues()
        elif args.list_activities:
            automation.list_activities()
        else:
            estimates = dict(args.estimate) if args.estimate else None
            result = automation.run(
                estimates=estimates,
                start=args.start,
                end=args.end,
                activity_id=args.activity,
                assume_yes=args.yes,
                dry_run=args.dry_run
            )
            if result is not None and not result.ok:
                sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"\n[ERROR] {e}")
        print(f"See {LOG_FILE} for details")
        sys.exit(1)


if __name__ == "__main__":
    main()
