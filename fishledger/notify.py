from __future__ import annotations

import logging
from typing import Optional

import streamlit as st

from fishledger.errors import StorageFailure
from fishledger.log import get_logger

log = get_logger("notify")


class Notifier:
    """Human-readable success/failure messages for ledger operations."""

    def success(self, title: str, description: str = "") -> None:
        raise NotImplementedError

    def error(self, title: str, description: str = "") -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    def success(self, title: str, description: str = "") -> None:
        log.info("%s %s", title, description)

    def error(self, title: str, description: str = "") -> None:
        log.error("%s %s", title, description)


class StreamlitNotifier(Notifier):
    def success(self, title: str, description: str = "") -> None:
        st.toast(f"**{title}**  \n{description}" if description else f"**{title}**", icon="✅")

    def error(self, title: str, description: str = "") -> None:
        st.toast(f"**{title}**  \n{description}" if description else f"**{title}**", icon="⚠️")


def announce(notifier: Optional[Notifier], ok: bool, title: str, description: str = "") -> None:
    if notifier is None:
        return
    if ok:
        notifier.success(title, description)
    else:
        notifier.error(title, description)


def report_failure(notifier: Optional[Notifier], title: str, err: ValueError, logger: logging.Logger) -> None:
    # Storage problems are errors; rejected input is only a warning.
    if isinstance(err, StorageFailure):
        logger.error("%s: %s", title, err)
    else:
        logger.warning("%s: %s", title, err)
    announce(notifier, False, title, str(err))
