from __future__ import annotations

import re
import shlex
from enum import Enum

from .common import TimerName, logger
from .ui import Console, choose


def empty_script(name: TimerName) -> str:
    return f'''
#!/bin/bash
#
# Executable for timer: {name}
#
# This script is executed by the {name}.service.
# Add your commands here.

echo "Job '{name}' executed at $(date)"

# Example:
# touch /tmp/cronie_test_$(date +%s)
'''.lstrip()


def rsync_script(name: TimerName, *, source: str, destination: str) -> str:
    return f'''
#!/bin/bash
#
# Executable for timer: {name}
# Performs an rsync backup.

SOURCE={shlex.quote(source)}
DESTINATION={shlex.quote(destination)}

echo "Starting rsync backup from $SOURCE to $DESTINATION..."
rsync -av --delete "$SOURCE/" "$DESTINATION/"
echo "Backup completed."
'''.lstrip()


def health_check_script(name: TimerName, *, url: str) -> str:
    return f'''
#!/bin/bash
#
# Executable for timer: {name}
# Performs a website health check.

URL_TO_CHECK={shlex.quote(url)}

echo "Checking status of $URL_TO_CHECK..."
STATUS_CODE=$(curl -o /dev/null -s -w "%{{http_code}}" "$URL_TO_CHECK")

if [[ "$STATUS_CODE" -ge 200 && "$STATUS_CODE" -lt 300 ]]; then
    echo "SUCCESS: Website is up. Status code: $STATUS_CODE"
else
    echo "FAILURE: Website might be down. Status code: $STATUS_CODE"
fi
'''.lstrip()


def is_url(s: str) -> bool:
    return re.match(r'^https?://', s) is not None


def is_absolute(s: str) -> bool:
    return s.startswith('/')


class Template(Enum):
    EMPTY = 'Empty Script'
    RSYNC = 'Simple rsync Backup'
    HEALTH_CHECK = 'Website Health Check'
    CANCEL = 'Cancel'


def ask_script(console: Console, name: TimerName) -> str | None:
    """
    Returns None if the user cancelled.
    """
    template = choose(console, 'Select a script template:', [(t.value, t) for t in Template])
    match template:
        case Template.EMPTY:
            return empty_script(name)
        case Template.RSYNC:
            while True:
                source = console.ask('Enter SOURCE directory (absolute path): ')
                destination = console.ask('Enter DESTINATION directory (absolute path): ')
                if source == '' or destination == '':
                    logger.error('Source and Destination cannot be empty.')
                    continue
                if not (is_absolute(source) and is_absolute(destination)):
                    logger.error('Source and Destination must be absolute paths.')
                    continue
                return rsync_script(name, source=source, destination=destination)
        case Template.HEALTH_CHECK:
            while True:
                url = console.ask('Enter URL to check (e.g., https://google.com): ')
                if is_url(url):
                    return health_check_script(name, url=url)
                logger.error('Invalid URL format.')
        case Template.CANCEL:
            return None
