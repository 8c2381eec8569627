import logging
import os
import sys

from src.components.calendar import is_valid_time_zone
from src.rules.models import Rules

logger = logging.getLogger(__name__)


def validate_ops_rules(rules: Rules) -> None:
    """
    Validate operational requirements before startup.
    Exits the process on a fatal configuration error.
    """
    # 1. Required env
    missing = [env_var for env_var in rules.ops.required_env if env_var not in os.environ]
    if missing:
        print(
            f"CRITICAL: Missing required environment variables: {', '.join(missing)}",
            file=sys.stderr,
        )
        sys.exit(1)

    # 2. Default zone must load; there is no silent fallback later on
    if not is_valid_time_zone(rules.calendar.default_timezone):
        print(
            f"CRITICAL: Unknown default time zone: {rules.calendar.default_timezone}",
            file=sys.stderr,
        )
        sys.exit(1)

    logger.info(
        f"Configuration validated (zone={rules.calendar.default_timezone}, "
        f"stake={rules.stakes.base_stake_cents}+{rules.stakes.goal_locked_stake_cents})"
    )
