"""readwise-ulysses entry point.

One-shot script: copies every Readwise book's highlights into Ulysses,
then exits. Exits 1 on any failure.
"""

import logging
import sys

log = logging.getLogger("readwise_ulysses")


def _options():
    from readwise_ulysses import config
    from readwise_ulysses.sync import SyncOptions

    return SyncOptions(
        root_group=config.ULYSSES_ROOT_GROUP,
        group_by=config.ULYSSES_GROUP_BY,
        sheet_match=config.ULYSSES_SHEET_MATCH,
        create_notes=config.ULYSSES_CREATE_NOTES,
        delay=config.RATE_LIMIT_DELAY,
    )


def run(token: str) -> None:
    """Authenticate both sides and run one sync."""
    from readwise_ulysses import config
    from readwise_ulysses.readwise_client import ReadwiseClient
    from readwise_ulysses.sync import run_sync
    from readwise_ulysses.ulysses_client import SCHEME, UlyssesClient
    from readwise_ulysses.xcall import XCallRunner

    readwise = ReadwiseClient.authenticate(
        token,
        page_size=config.READWISE_PAGE_SIZE,
        timeout=config.HTTP_TIMEOUT,
    )
    runner = XCallRunner(SCHEME, binary=config.XCALL_PATH, timeout=config.XCALL_TIMEOUT)
    ulysses = UlyssesClient.authenticate(runner, appname=config.ULYSSES_APP_NAME)

    run_sync(readwise, ulysses, _options())


def main():
    from readwise_ulysses import config
    from readwise_ulysses.errors import InvalidCredentialError, SyncError

    config.setup_logging()
    config.check_settings()
    token = config.access_token()

    try:
        run(token)
    except InvalidCredentialError as e:
        log.error("%s. Check READWISE_ACCESS_TOKEN in %s", e, config.ENV_PATH)
        sys.exit(1)
    except SyncError:
        log.exception("Sync aborted")
        sys.exit(1)
    except Exception:
        log.exception("Unexpected error")
        sys.exit(1)


if __name__ == "__main__":
    main()
