"""
Streamlit entry point for Deep Stock Research.

Keeps one `ResearchOrchestrator` per browser session, lets the user manage the
API key from the sidebar and renders the memo from typed content blocks.
Block text is escaped before it reaches `st.markdown`, so nothing the model
writes is interpreted as markup beyond the blocks themselves.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Sequence

import streamlit as st
from dotenv import load_dotenv

from stock_research import ConfigurationError, ResearchOrchestrator, Settings
from stock_research.rendering import ContentBlock, Heading, InlineRun, UnorderedList
from stock_research.research_state import Failed, Succeeded

# Ensure environment variables from .env are loaded before building settings.
load_dotenv()

LOGGER = logging.getLogger(__name__)

FAILURE_PREFIX = "Failed to generate report. Please check your API Key and try again."
_MARKDOWN_SPECIAL = re.compile(r"([\\`*_{}\[\]()#+\-.!|<>~$])")


def _escape(text: str) -> str:
    return _MARKDOWN_SPECIAL.sub(r"\\\1", text)


def _strong_markdown(text: str) -> str:
    # Markdown only bolds when the markers touch non-space characters.
    core = text.strip()
    if not core:
        return _escape(text)
    leading = text[: len(text) - len(text.lstrip())]
    trailing = text[len(text.rstrip()):]
    return f"{leading}**{_escape(core)}**{trailing}"


def _runs_markdown(runs: Sequence[InlineRun]) -> str:
    return "".join(_strong_markdown(run.text) if run.strong else _escape(run.text) for run in runs)


def _render_blocks(blocks: Sequence[ContentBlock]) -> None:
    for block in blocks:
        if isinstance(block, Heading) and block.level == 1:
            st.header(_escape(block.text))
        elif isinstance(block, Heading) and block.level == 2:
            st.subheader(_escape(block.text))
        elif isinstance(block, Heading):
            st.markdown(f"**{_escape(block.text)}**")
        elif isinstance(block, UnorderedList):
            st.markdown("\n".join(f"- {_runs_markdown(item)}" for item in block.items))
        else:
            st.markdown(_runs_markdown(block.runs))


def _init_session_state() -> None:
    """Initialize keys stored in st.session_state."""
    if "orchestrator" not in st.session_state:
        st.session_state.orchestrator = ResearchOrchestrator.from_settings(Settings.from_env())
    if "show_key_input" not in st.session_state:
        st.session_state.show_key_input = False


def _render_sidebar(orchestrator: ResearchOrchestrator) -> None:
    """Render the API key controls."""
    with st.sidebar:
        st.header("API Key")
        expanded = st.session_state.show_key_input or not orchestrator.credential.is_set
        with st.expander("Key settings", expanded=expanded):
            key = st.text_input(
                "API key",
                value=orchestrator.credential.value,
                type="password",
                placeholder="Enter your API key...",
            )
            if st.button("Save key", use_container_width=True):
                if orchestrator.set_credential(key):
                    st.success("Key saved locally.")
                else:
                    st.warning("Key kept for this session only; local storage is unavailable.")
                st.session_state.show_key_input = False
            st.caption("Your key is stored locally on this machine.")


def main() -> None:
    st.set_page_config(page_title="Deep Stock Research", layout="centered")

    st.title("Deep Stock Research")
    st.caption("Get a comprehensive 13-point investment memo in seconds.")

    try:
        _init_session_state()
    except ConfigurationError as exc:
        LOGGER.exception("Invalid configuration: %s", exc)
        st.error(f"Invalid configuration: {exc}")
        return

    orchestrator: ResearchOrchestrator = st.session_state.orchestrator
    _render_sidebar(orchestrator)

    with st.form("research_form"):
        subject = st.text_input("Ticker or company name", placeholder="Enter Ticker (e.g., AAPL) or Company Name")
        submitted = st.form_submit_button("Research")

    if submitted and subject.strip():
        with st.spinner("Generating deep research memo..."):
            asyncio.run(orchestrator.research(subject))
        if orchestrator.credential_required:
            st.session_state.show_key_input = True
            st.rerun()

    state = orchestrator.state
    if isinstance(state, Failed):
        st.error(f"{FAILURE_PREFIX} {state.message}")
    elif isinstance(state, Succeeded):
        header, download = st.columns([3, 1])
        header.caption(f"Generated report: {state.subject}")
        download.download_button(
            "Download Markdown",
            data=state.raw_text,
            file_name=f"{state.subject}_memo.md",
            mime="text/markdown",
        )
        with st.container(border=True):
            _render_blocks(state.blocks)

    st.caption("Information for research purposes only.")


if __name__ == "__main__":
    main()
