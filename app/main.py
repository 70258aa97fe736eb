"""
Streamlit Frontend for the Voice Expense Tracker

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before anything is saved
3. Clear error messages in simple language
4. Typing is always available when voice fails

The voice page is a thin view over VoiceExpenseSession: buttons are enabled
from the session's gates and every click is one session transition followed
by a rerun. The session lives in st.session_state, so it is per browser tab
and disappears on reload.
"""

import asyncio
import json
from datetime import date

import streamlit as st
import streamlit.components.v1 as components

from expense_tracker.audit import configure_logging, create_correlation_id
from expense_tracker.config import get_settings, validate_all_settings
from expense_tracker.extraction import ExtractionClient
from expense_tracker.models.expense import (
    CATEGORIES,
    ExpenseCandidate,
    ExpenseSort,
    ExpenseUpdateRequest,
)
from expense_tracker.orchestrator import ExpenseFlow, create_app_components
from expense_tracker.services.storage import NotFoundError, StorageError
from expense_tracker.validation import ExpenseValidationError
from expense_tracker.voice import (
    SUPPORTED_LANGUAGES,
    AudioClipCapture,
    SessionPhase,
    SpeechAnnouncer,
    VoiceExpenseSession,
    language_name,
)


# Page configuration
st.set_page_config(
    page_title="Voice Expense Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

SORT_LABELS = {
    ExpenseSort.DATE_DESC: "Newest first",
    ExpenseSort.DATE_ASC: "Oldest first",
    ExpenseSort.AMOUNT_DESC: "Highest amount",
    ExpenseSort.AMOUNT_ASC: "Lowest amount",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    configure_logging(get_settings().app.log_level)
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


class BrowserSpeechAnnouncer(SpeechAnnouncer):
    """
    Speaks through the browser's speechSynthesis.

    Python cannot wait for the browser to finish, so speak() only queues the
    utterance; render_pending_speech() emits it on the current page run.
    """

    async def speak(self, text: str, lang: str) -> None:
        st.session_state.speech_request = {"text": text, "lang": lang}

    def cancel(self) -> None:
        st.session_state.speech_request = {"cancel": True}


def render_pending_speech():
    request = st.session_state.pop("speech_request", None)
    if not request:
        return
    if request.get("cancel"):
        script = "synth.cancel();"
    else:
        script = (
            "synth.cancel();"
            f"const u = new SpeechSynthesisUtterance({json.dumps(request['text'])});"
            f"u.lang = {json.dumps(request['lang'])};"
            "synth.speak(u);"
        )
    components.html(
        "<script>"
        "const synth = (window.parent || window).speechSynthesis;"
        f"if (synth) {{ {script} }}"
        "</script>",
        height=0,
    )


def format_money(amount) -> str:
    return f"{float(amount):,.2f}"


# =============================================================================
# USERNAME GATE
# =============================================================================

def require_username() -> str:
    """Ask for a username once per browser session."""
    if st.session_state.get("username"):
        return st.session_state.username

    st.title("💰 Voice Expense Tracker")
    st.markdown("Expenses are kept separately for each username.")
    with st.form("username_form"):
        name = st.text_input("Your name", max_chars=100)
        if st.form_submit_button("Continue", type="primary"):
            if name.strip():
                st.session_state.username = name.strip()
                st.rerun()
            st.error("Please enter a name")
    st.stop()


def main():
    """Main application entry point."""
    flow, _ = get_components()
    username = require_username()

    # Sidebar navigation
    st.sidebar.title("💰 Voice Expenses")
    st.sidebar.markdown(f"Signed in as **{username}**")
    if st.sidebar.button("Switch user"):
        session = st.session_state.pop("voice_session", None)
        if session:
            session.close()
        st.session_state.pop("username", None)
        st.rerun()
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["🎤 Voice Entry", "✍️ Add Manually", "📊 Expenses", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use voice:**
        1. Press *Start* and record what you spent
        2. Press *Stop*, then *Process*
        3. Check the details and confirm

        Try: "I spent 300 rupees on groceries yesterday"
        """
    )

    # Route to appropriate page
    if page == "🎤 Voice Entry":
        render_voice_page(flow, username)
    elif page == "✍️ Add Manually":
        render_manual_page(flow, username)
    elif page == "📊 Expenses":
        render_expenses_page(flow, username)
    elif page == "⚙️ Settings":
        render_settings_page(flow)


# =============================================================================
# VOICE ENTRY
# =============================================================================

def _clip_key() -> str:
    return f"voice_clip_{st.session_state.get('voice_attempt', 0)}"


def _read_clip():
    clip = st.session_state.get(_clip_key())
    return clip.getvalue() if clip is not None else None


class AttemptExtractor:
    """In-process extraction tagged with the current attempt's correlation ID."""

    def __init__(self, flow: ExpenseFlow):
        self._flow = flow

    async def extract(self, transcript: str, language: str):
        return await self._flow.extract(
            transcript,
            language,
            correlation_id=st.session_state.get("voice_correlation_id"),
        )


def get_voice_session(flow: ExpenseFlow) -> VoiceExpenseSession:
    """One VoiceExpenseSession per browser tab."""
    if "voice_session" not in st.session_state:
        settings = get_settings().app
        extractor = (
            ExtractionClient(settings.extraction_endpoint_url)
            if settings.extraction_endpoint_url
            else AttemptExtractor(flow)
        )

        async def submit(candidate: ExpenseCandidate):
            try:
                expense, result = await flow.create_expense(
                    st.session_state.username,
                    candidate,
                    source="voice",
                    correlation_id=st.session_state.get("voice_correlation_id"),
                )
            except ExpenseValidationError as e:
                st.session_state.voice_notice = ("error", flow.validator.get_user_friendly_summary(e.result))
                return None
            except StorageError as e:
                st.session_state.voice_notice = ("error", f"Could not save: {e}")
                return None
            message = f"Saved {format_money(expense.amount)} for {expense.category}."
            if result.warnings:
                message += " " + " ".join(result.warnings)
            st.session_state.voice_notice = ("success", message)
            return expense

        st.session_state.voice_session = VoiceExpenseSession(
            capture=AudioClipCapture(_read_clip, supported=hasattr(st, "audio_input")),
            announcer=BrowserSpeechAnnouncer(),
            extractor=extractor,
            on_submit=submit,
            default_language=settings.default_language,
        )
    return st.session_state.voice_session


def render_voice_page(flow: ExpenseFlow, username: str):
    """Render the voice entry page."""
    st.title("🎤 Voice Entry")
    st.markdown("Say what you spent. You can check and change everything before it is saved.")

    session = get_voice_session(flow)

    notice = st.session_state.pop("voice_notice", None)
    if notice:
        kind, message = notice
        (st.success if kind == "success" else st.error)(message)
    if session.error:
        st.warning(session.error)

    st.caption(f"Language: {language_name(session.detected_language)}")

    col1, col2, col3 = st.columns(3)
    with col1:
        if st.button("🎤 Start", disabled=not session.can_start_listening, type="primary"):
            st.session_state.voice_attempt = st.session_state.get("voice_attempt", 0) + 1
            st.session_state.voice_correlation_id = create_correlation_id()
            session.start_listening()
            st.rerun()
    with col2:
        if st.button("⏹️ Stop", disabled=not session.can_stop_listening):
            session.stop_listening()
            st.rerun()
    with col3:
        if st.button("✖️ Cancel", disabled=session.phase is SessionPhase.IDLE):
            if session.phase is SessionPhase.REVIEWING:
                run_async(flow.reject_extraction(
                    username=username,
                    reason="Cancelled",
                    correlation_id=st.session_state.get("voice_correlation_id"),
                ))
            session.cancel()
            st.rerun()

    if session.phase is SessionPhase.LISTENING:
        st.audio_input("Record your expense", key=_clip_key())
        st.info("Record, then press Stop.")

    if session.phase is SessionPhase.TRANSCRIBED:
        st.markdown("**You said:**")
        st.markdown(f"> {session.transcript}")
        if st.button("🔍 Process", disabled=not session.can_extract, type="primary"):
            async def extract_and_settle():
                await session.extract()
                await session.wait_until_quiet()

            with st.spinner("Understanding your expense..."):
                run_async(extract_and_settle())
            st.rerun()

    if session.phase is SessionPhase.REVIEWING:
        render_voice_review(flow, session, username)

    render_pending_speech()


def render_voice_review(flow: ExpenseFlow, session: VoiceExpenseSession, username: str):
    candidate = session.candidate

    st.markdown("---")
    st.subheader("📋 Is this right?")
    st.markdown(f"> {session.transcript}")
    st.markdown("*You can edit any field before saving*")

    col1, col2 = st.columns(2)
    with col1:
        amount = st.text_input("Amount *", value=candidate.amount)
        options = CATEGORIES if candidate.category in CATEGORIES else [candidate.category] + CATEGORIES
        category = st.selectbox("Category *", options=options, index=options.index(candidate.category))
    with col2:
        description = st.text_input("Description", value=candidate.description)
        spent_on = st.text_input("Date (YYYY-MM-DD, empty for today)", value=candidate.date)

    for field, value in (
        ("amount", amount),
        ("category", category),
        ("description", description),
        ("date", spent_on),
    ):
        if getattr(candidate, field) != value:
            session.edit_field(field, value)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✅ Confirm & Add", type="primary", disabled=not session.can_confirm):
            run_async(session.confirm())
            st.rerun()
    with col2:
        if st.button("🔄 Try Again", disabled=not session.can_retry):
            run_async(flow.reject_extraction(
                username=username,
                reason="Try again",
                correlation_id=st.session_state.get("voice_correlation_id"),
            ))
            st.session_state.voice_attempt = st.session_state.get("voice_attempt", 0) + 1
            session.retry()
            st.rerun()


# =============================================================================
# MANUAL ENTRY
# =============================================================================

def render_manual_page(flow: ExpenseFlow, username: str):
    """Render the manual entry form. Same creation path as voice."""
    st.title("✍️ Add Expense")

    with st.form("manual_expense", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            amount = st.text_input("Amount *", placeholder="e.g. 250")
            category = st.selectbox("Category *", options=CATEGORIES)
        with col2:
            description = st.text_input("Description")
            spent_on = st.date_input("Date", value=date.today())
        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        candidate = ExpenseCandidate(
            amount=amount,
            category=category,
            description=description,
            date=spent_on.isoformat() if spent_on else "",
        )
        try:
            expense, result = run_async(flow.create_expense(username, candidate))
        except ExpenseValidationError as e:
            st.error(flow.validator.get_user_friendly_summary(e.result))
        except StorageError as e:
            st.error(f"Could not save: {e}")
        else:
            st.success(f"✅ Saved {format_money(expense.amount)} for {expense.category}")
            for warning in result.warnings:
                st.warning(warning)


# =============================================================================
# EXPENSE LIST
# =============================================================================

def render_expenses_page(flow: ExpenseFlow, username: str):
    """Render the expenses list page."""
    st.title("📊 Your Expenses")

    # Filters
    col1, col2, col3 = st.columns(3)
    with col1:
        date_range = st.date_input("Date range", value=[], help="Leave empty for all dates")
    with col2:
        category_filter = st.selectbox(
            "Category",
            options=[None] + CATEGORIES,
            format_func=lambda x: "All Categories" if x is None else x,
        )
    with col3:
        sort = st.selectbox(
            "Sort by",
            options=list(ExpenseSort),
            format_func=lambda s: SORT_LABELS[s],
        )

    date_from = date_range[0] if len(date_range) > 0 else None
    date_to = date_range[1] if len(date_range) > 1 else date_from

    try:
        expenses = run_async(flow.list_expenses(
            username=username,
            date_from=date_from,
            date_to=date_to,
            category=category_filter,
            sort=sort,
        ))
        totals = run_async(flow.category_totals(
            username=username,
            date_from=date_from,
            date_to=date_to,
        ))
    except StorageError as e:
        st.error(f"Could not load expenses: {e}")
        return

    if not expenses:
        st.info("No expenses yet. Use 'Voice Entry' or 'Add Manually' to add one.")
        return

    st.metric("Total", format_money(sum(e.amount for e in expenses)))

    if totals and category_filter is None:
        st.subheader("By category")
        st.bar_chart(
            [{"category": t.category, "total": float(t.total)} for t in totals],
            x="category",
            y="total",
        )

    st.subheader("Expenses")
    for expense in expenses:
        label = f"{expense.date.isoformat()} · {expense.category} · {format_money(expense.amount)}"
        with st.expander(label):
            render_expense_editor(flow, expense)


def render_expense_editor(flow: ExpenseFlow, expense):
    key = str(expense.id)
    with st.form(f"edit_{key}"):
        amount = st.text_input("Amount", value=str(expense.amount), key=f"amount_{key}")
        category = st.selectbox(
            "Category",
            options=CATEGORIES,
            index=CATEGORIES.index(expense.category) if expense.category in CATEGORIES else 0,
            key=f"category_{key}",
        )
        description = st.text_input("Description", value=expense.description or "", key=f"description_{key}")
        spent_on = st.date_input("Date", value=expense.date, key=f"date_{key}")
        saved = st.form_submit_button("💾 Update")

    if saved:
        changes = ExpenseUpdateRequest(
            amount=amount,
            category=category,
            description=description,
            date=spent_on.isoformat(),
        )
        try:
            run_async(flow.update_expense(expense.id, changes))
        except ExpenseValidationError as e:
            st.error(flow.validator.get_user_friendly_summary(e.result))
        except NotFoundError:
            st.error("This expense no longer exists")
        else:
            st.rerun()

    if st.button("🗑️ Delete", key=f"delete_{key}"):
        run_async(flow.delete_expense(expense.id))
        st.rerun()


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(flow: ExpenseFlow):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI)", "gemini"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    app_settings = get_settings().app
    if app_settings.extraction_endpoint_url:
        st.info(f"Voice extraction uses {app_settings.extraction_endpoint_url}")
    else:
        st.info("Voice extraction runs inside this app")

    st.markdown("### Languages")
    st.markdown(", ".join(f"{name} ({code})" for code, name in SUPPORTED_LANGUAGES.items()))

    storage = flow.audit_logger.storage
    if storage is not None:
        st.markdown("### Recent Activity")
        try:
            events = run_async(storage.get_recent_events(limit=20))
        except StorageError as e:
            st.error(f"Could not load activity: {e}")
            events = []
        for event in events:
            st.markdown(f"- `{event.timestamp:%Y-%m-%d %H:%M}` {event.description}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
