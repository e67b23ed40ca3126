"""Conversational orchestration: one inbound message in, one answer out.

``Assistant.handle_message`` runs, in order:

1. Validation (before any external call)
2. Concern detection on the raw message
3. Language resolution and translation to the working language
   (concern detection is repeated on the translation when needed)
4. Context extraction and merge into the session
5. The intent ladder, or evidence retrieval plus composition
6. Preference formatting and translation into the reply language
7. Session, chat-log and concern-record bookkeeping
"""

from __future__ import annotations

import logging
import re
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from vidya.classification import (
    ConcernClassifier,
    Intent,
    IntentClassifier,
    MessageSignals,
    extract_registration_number,
    extract_task_titles,
)
from vidya.classification.intents import event_title, greeting_kind, regulation_code
from vidya.composer import (
    ResponseComposer,
    apply_length_preference,
    apply_style_preference,
    format_response,
    with_greeting,
)
from vidya.composer import handlers
from vidya.composer.regulations import regulation_answer
from vidya.composer.schedule import extract_day_section, format_schedule, latest_timetable
from vidya.config import VidyaConfig
from vidya.errors import ConcernDetectionFailure, InvalidMessageError, NotFoundError
from vidya.models import (
    ChatResponse,
    ConcernAssessment,
    ConcernRecord,
    Corpus,
    EvidenceDocument,
    SourceTag,
)
from vidya.models.schemas import MessageRequest, validate_message
from vidya.monitoring import metrics
from vidya.observability import add_span_attributes, record_histogram, traced
from vidya.sessions.context import extract_context
from vidya.translation.languages import language_name, normalize_language

if TYPE_CHECKING:
    from collections.abc import Callable

    from vidya.index.documents import DocumentSource
    from vidya.index.similarity import IndexSet
    from vidya.integrations.concerns import ConcernSink
    from vidya.models import Session, StudentProfile
    from vidya.query.retriever import EvidenceRetriever
    from vidya.sessions.records import ChatLogRecorder, ProfileDirectory, TaskStore
    from vidya.sessions.store import SessionStore
    from vidya.translation.service import TranslationService

logger = logging.getLogger(__name__)

EVENT_OVERVIEW_SIZE = 5
EVENT_OVERVIEW_PATTERN = re.compile(r"\b(upcoming|all|list|any|latest|events)\b", re.IGNORECASE)

# Answers that keep their full text whatever the length preference
_UNTRIMMED_TAGS = frozenset({SourceTag.CONCERN, SourceTag.TODO, SourceTag.SCHEDULE, SourceTag.PROFILE})
# Answers that get the first-turn greeting prefix
_GREETED_TAGS = frozenset({SourceTag.UTILITY, SourceTag.KNOWLEDGE, SourceTag.WEB, SourceTag.GENERATION})


class Assistant:
    """Per-message orchestration over the core components.

    Args:
        config: Assistant configuration
        translation: Translation service
        retriever: Evidence retriever
        index_set: Similarity indexes (event lookups)
        documents: Document source (timetables, event listings)
        sessions: Session store
        tasks: Task store
        composer: Response composer
        profiles: Student profile directory
        concern_sink: Receiver for concern records
        chat_log: Chat-history recorder
        concern_classifier: Concern classifier
        intent_classifier: Intent ladder
        clock: Local wall clock for time, date and schedule answers
    """

    def __init__(
        self,
        config: VidyaConfig,
        translation: TranslationService,
        retriever: EvidenceRetriever,
        index_set: IndexSet,
        documents: DocumentSource,
        sessions: SessionStore,
        tasks: TaskStore,
        composer: ResponseComposer,
        profiles: ProfileDirectory | None = None,
        concern_sink: ConcernSink | None = None,
        chat_log: ChatLogRecorder | None = None,
        concern_classifier: ConcernClassifier | None = None,
        intent_classifier: IntentClassifier | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config
        self.translation = translation
        self.retriever = retriever
        self.index_set = index_set
        self.documents = documents
        self.sessions = sessions
        self.tasks = tasks
        self.composer = composer
        self.profiles = profiles
        self.concern_sink = concern_sink
        self.chat_log = chat_log
        self.concern_classifier = concern_classifier or ConcernClassifier()
        self.intent_classifier = intent_classifier or IntentClassifier()
        self._clock = clock

    @property
    def institution(self) -> str:
        return self.config.institution_name

    # =========================================================================
    # Entry point
    # =========================================================================

    @traced("assistant.handle_message")
    async def handle_message(
        self,
        user_id: str,
        session_label: str,
        text: str,
        preferred_language: str | None = None,
        *,
        device_info: dict[str, Any] | None = None,
        registration_number: str | None = None,
    ) -> ChatResponse:
        """Answer one inbound message.

        Args:
            user_id: Authenticated user
            session_label: Client-chosen session label
            text: Message text as typed
            preferred_language: Reply language code or English name
            device_info: Optional client details stored on the session
            registration_number: Registration number from the user record

        Returns:
            Answer in the reply language with the branch that produced it

        Raises:
            InvalidMessageError: Empty or oversized message, bad identifiers,
                or an unsupported preferred language on a message that is
                not a concern
        """
        started = time.perf_counter()
        request = self._validate(user_id, session_label, text, preferred_language, device_info)
        message = request.text

        concern = self._safe_classify_concern(message)
        preferred_language = self._check_language(request.preferred_language, concern)

        session = await self.sessions.get_or_create(request.user_id, request.session_label, request.device_info)
        first_turn = not session.turns
        source_lang, reply_lang = await self._resolve_languages(message, preferred_language)

        working = self.translation.working_language
        message_en = await self.translation.translate(message, source_lang, working)
        if not concern.is_concern and message_en != message:
            concern = self._safe_classify_concern(message_en)

        await self.sessions.merge_context(session, extract_context(message_en))

        if concern.is_concern:
            answer_en, tag = self._concern_answer(session, concern), SourceTag.CONCERN
        else:
            answer_en, tag = await self._answer(session, message_en, registration_number)

        greet_name = await self._display_name(session) if first_turn else None
        answer_en = self._finish(session, answer_en, tag, greet_name)
        answer = await self.translation.translate(answer_en, working, reply_lang)

        conversation = [turn.to_dict() for turn in self.sessions.recent_turns(session, self.config.concerns.history_turns)]
        await self.sessions.append_turn(session, "user", message, reply_lang)
        await self.sessions.append_turn(session, "assistant", answer, reply_lang)
        turn_count = session.metadata.get("turn_count", 0) + 2
        session.metadata["turn_count"] = turn_count

        if self.chat_log is not None:
            self.chat_log.record(request.user_id, request.session_label, message, answer)

        if concern.is_concern:
            await self._emit_concern(
                ConcernRecord(
                    user_id=request.user_id,
                    session_label=request.session_label,
                    concern_type=concern.concern_type,
                    severity=concern.severity,
                    original_message=message,
                    assistant_response=answer,
                    keywords=list(concern.keywords),
                    conversation=conversation,
                    registration_number=registration_number,
                    turn_index=turn_count - 2,
                )
            )

        await self._maybe_summarize(session, turn_count)

        elapsed = time.perf_counter() - started
        metrics.messages_total.labels(source_tag=tag.value, language=reply_lang).inc()
        metrics.message_duration_seconds.observe(elapsed)
        record_histogram("assistant.message.duration", elapsed, {"source_tag": tag.value})
        add_span_attributes(
            {
                "message.source_tag": tag.value,
                "message.source_language": source_lang,
                "message.reply_language": reply_lang,
                "message.concern": concern.concern_type.value,
            }
        )
        logger.info(
            f"Answered {request.user_id}/{request.session_label} via {tag.value} "
            f"({source_lang}->{reply_lang}) in {elapsed:.3f}s"
        )
        return ChatResponse(
            answer=answer,
            source_tag=tag,
            language=reply_lang,
            concern=concern if concern.is_concern else None,
        )

    async def set_preferences(
        self,
        user_id: str,
        session_label: str,
        *,
        answer_length: str | None = None,
        response_style: str | None = None,
    ) -> None:
        """Store answer-length (short/medium/long) and style (friendly/formal) preferences."""
        session = await self.sessions.get_or_create(user_id, session_label)
        preferences = {}
        if answer_length:
            preferences["answer_length"] = answer_length
        if response_style:
            preferences["response_style"] = response_style
        await self.sessions.set_preferences(session, preferences)

    # =========================================================================
    # Validation, languages, concerns
    # =========================================================================

    def _validate(
        self,
        user_id: str,
        session_label: str,
        text: str,
        preferred_language: str | None,
        device_info: dict[str, Any] | None,
    ) -> MessageRequest:
        try:
            request = validate_message(
                user_id=user_id,
                session_label=session_label or "default",
                text=text or "",
                preferred_language=preferred_language,
                device_info=device_info or {},
            )
        except InvalidMessageError as e:
            metrics.invalid_messages_total.labels(field=e.field or "unknown").inc()
            logger.info(f"Rejected message from {user_id!r}: {e.user_message}")
            raise
        return request

    def _check_language(self, preferred_language: str | None, concern: ConcernAssessment) -> str | None:
        """Reject an unsupported reply language, unless the message is a concern.

        A concern is still answered and escalated, in the language the
        message was written in.

        Raises:
            InvalidMessageError: If the language is unsupported and no concern was found
        """
        if not preferred_language or self.translation.is_supported(preferred_language):
            return preferred_language

        metrics.invalid_messages_total.labels(field="preferred_language").inc()
        if concern.is_concern:
            logger.warning(
                f"⚠️ Unsupported language {preferred_language!r} on a {concern.concern_type.value} concern, "
                "replying in the message language"
            )
            return None

        supported = ", ".join(language_name(code) for code in self.config.translation.supported_languages)
        raise InvalidMessageError(
            f"I can't reply in '{preferred_language}' yet. Supported languages: {supported}.",
            field="preferred_language",
        )

    async def _resolve_languages(self, message: str, preferred_language: str | None) -> tuple[str, str]:
        """Source language of the message and the language to reply in.

        ASCII messages detected as the default language are treated as
        romanized text in the preferred language when that is a different
        supported language.
        """
        default = self.config.translation.default_language
        preferred = normalize_language(preferred_language)
        if preferred is not None and not self.translation.is_supported(preferred):
            preferred = None

        detected = await self.translation.detect_language(message)
        source = detected if self.translation.is_supported(detected) else default
        if message.isascii() and source == default and preferred is not None and preferred != default:
            source = preferred
        return source, preferred or source

    def _classify_concern(self, message: str) -> ConcernAssessment:
        try:
            return self.concern_classifier.classify(message)
        except Exception as e:
            raise ConcernDetectionFailure(f"concern classification failed: {e}", cause=e) from e

    def _safe_classify_concern(self, message: str) -> ConcernAssessment:
        try:
            assessment = self._classify_concern(message)
        except ConcernDetectionFailure as e:
            logger.exception(f"🔴 Concern detection failed, answering without it: {e}")
            metrics.concern_detection_failures_total.inc()
            return ConcernAssessment()
        if assessment.is_concern:
            metrics.concerns_detected_total.labels(
                concern_type=assessment.concern_type.value,
                severity=assessment.severity.value,
            ).inc()
            logger.warning(
                f"⚠️ Concern detected: {assessment.concern_type.value} "
                f"({assessment.severity.value}), keywords={list(assessment.keywords)}"
            )
        return assessment

    def _concern_answer(self, session: Session, concern: ConcernAssessment) -> str:
        return handlers.concern_reply(concern.concern_type, session.context.name or "Student", self.institution)

    async def _emit_concern(self, record: ConcernRecord) -> None:
        if self.concern_sink is None:
            logger.critical(f"🔴 No concern sink configured, record {record.id} was not delivered")
            return
        try:
            await self.concern_sink.emit(record)
        except Exception:
            logger.exception(f"🔴 Failed to emit concern record {record.id}")

    # =========================================================================
    # Intent ladder
    # =========================================================================

    async def _answer(
        self,
        session: Session,
        message: str,
        registration_number: str | None,
    ) -> tuple[str, SourceTag]:
        signals = MessageSignals(
            text=message,
            has_event_reference=self.sessions.last_event(session) is not None,
            has_department=bool(session.context.department),
            has_open_tasks=bool(await self.tasks.open_tasks(session.user_id)),
        )
        intent = self.intent_classifier.classify(signals)
        logger.debug(f"Intent for {session.user_id}: {intent.value}")

        if intent is not Intent.DEFAULT:
            try:
                handled = await self._handle_intent(intent, session, message, registration_number)
            except NotFoundError as e:
                logger.info(f"Not found while handling {intent.value}: {e}")
                return handlers.PROFILE_NOT_FOUND, SourceTag.PROFILE
            except Exception:
                logger.exception(f"❌ Handler for {intent.value} failed, falling back to retrieval")
                handled = None
            if handled is not None:
                return handled

        return await self._answer_from_evidence(session, message)

    async def _handle_intent(
        self,
        intent: Intent,
        session: Session,
        message: str,
        registration_number: str | None,
    ) -> tuple[str, SourceTag] | None:
        user_id = session.user_id
        if intent is Intent.SCHEDULE:
            return await self._schedule(user_id), SourceTag.SCHEDULE
        if intent is Intent.GREETING:
            name = await self._display_name(session)
            kind = greeting_kind(message) or "ack"
            reply = handlers.greeting_reply(
                kind, name, session.context.department, self.config.assistant_name, self.institution
            )
            return reply, SourceTag.GREETING
        if intent in (Intent.TASK_CLEAR, Intent.TASK_COMPLETE, Intent.TASK_LIST, Intent.TASK_CREATE):
            return await self._tasks(intent, user_id, message), SourceTag.TODO
        if intent in (Intent.EVENT_DETAIL, Intent.EVENT_LIST, Intent.EVENT_FOLLOW_UP):
            reply = await self._events(intent, session, message)
            return (reply, SourceTag.EVENT) if reply is not None else None
        if intent is Intent.UTILITY_TIME:
            return handlers.time_reply(self._clock()), SourceTag.UTILITY
        if intent is Intent.UTILITY_DATE:
            return handlers.date_reply(self._clock()), SourceTag.UTILITY
        if intent is Intent.STUDY_TIPS:
            return handlers.STUDY_TIPS, SourceTag.UTILITY
        if intent is Intent.COURSE_CONTEXT:
            department = session.context.department or ""
            return handlers.course_context_reply(department, session.context.year, self.institution), SourceTag.PROFILE
        if intent is Intent.PERSONAL_DATA:
            profile = await self._lookup_profile(user_id, message, registration_number)
            return handlers.profile_card(profile), SourceTag.PROFILE
        if intent is Intent.REGULATION:
            return regulation_answer(regulation_code(message) or "general", self.institution), SourceTag.REGULATION
        if intent is Intent.OUT_OF_SCOPE:
            return handlers.scope_reply(self.config.assistant_name, self.institution), SourceTag.SCOPE
        return None

    async def _answer_from_evidence(self, session: Session, message: str) -> tuple[str, SourceTag]:
        options = self.retriever.default_options(user_id=session.user_id)
        bundle = await self.retriever.retrieve(message, options)
        profile = await self._own_profile(session.user_id)
        composed = await self.composer.compose(
            message,
            bundle,
            session,
            history=self.sessions.recent_turns(session),
            profile=profile,
        )
        return composed.text, composed.source_tag

    # =========================================================================
    # Branch handlers
    # =========================================================================

    async def _schedule(self, user_id: str) -> str:
        timetable = latest_timetable(await self.documents.load(Corpus.KNOWLEDGE), user_id)
        if timetable is None:
            return handlers.SCHEDULE_MISSING
        weekday = self._clock().strftime("%A")
        lines = extract_day_section(timetable.body, weekday)
        if not lines:
            return f"I found your timetable but could not find any classes for {weekday}."
        return format_schedule(weekday, lines)

    async def _tasks(self, intent: Intent, user_id: str, message: str) -> str:
        if intent is Intent.TASK_LIST:
            return handlers.task_list_reply(await self.tasks.list(user_id))

        if intent is Intent.TASK_CLEAR:
            updated = await self.tasks.complete_all(user_id)
            if updated == 0:
                return handlers.TASKS_EMPTY
            return handlers.tasks_completed_reply(updated, 0, cleared_all=True)

        titles = extract_task_titles(message)
        if intent is Intent.TASK_COMPLETE:
            completed = await self.tasks.complete_matching(user_id, titles, message)
            remaining = len(await self.tasks.open_tasks(user_id))
            return handlers.tasks_completed_reply(len(completed), remaining)

        if not titles:
            return handlers.TASK_CREATE_HELP
        await self.tasks.add_many(user_id, titles)
        remaining = len(await self.tasks.open_tasks(user_id))
        return handlers.tasks_created_reply(len(titles), remaining)

    async def _latest_events(self) -> list[EvidenceDocument]:
        events = await self.documents.load(Corpus.EVENT)
        return sorted(events, key=lambda event: event.updated_at, reverse=True)[:EVENT_OVERVIEW_SIZE]

    async def _best_event(self, query: str) -> EvidenceDocument | None:
        hits = await self.index_set.search(Corpus.EVENT, query, 1)
        if hits and hits[0].score >= self.config.retrieval.min_similarity:
            return hits[0].document
        return None

    async def _events(self, intent: Intent, session: Session, message: str) -> str | None:
        if intent is Intent.EVENT_FOLLOW_UP:
            title = self.sessions.last_event(session)
            events = await self.documents.load(Corpus.EVENT)
            event = next((e for e in events if title and e.title.lower() == title.lower()), None)
            if event is None:
                return None
            return handlers.event_card(event)

        if intent is Intent.EVENT_DETAIL:
            title = event_title(message) or message
            event = await self._best_event(title)
            if event is None:
                lowered = title.lower()
                event = next((e for e in await self.documents.load(Corpus.EVENT) if lowered in e.title.lower()), None)
            if event is None:
                return handlers.event_not_found(await self._latest_events())
            self.sessions.remember_event(session, event.title)
            return handlers.event_card(event)

        if not EVENT_OVERVIEW_PATTERN.search(message):
            event = await self._best_event(message)
            if event is not None:
                self.sessions.remember_event(session, event.title)
                return handlers.event_card(event)
        return handlers.events_overview(await self._latest_events())

    async def _own_profile(self, user_id: str) -> StudentProfile | None:
        if self.profiles is None:
            return None
        return await self.profiles.get(user_id)

    async def _display_name(self, session: Session) -> str:
        if session.context.name:
            return session.context.name
        profile = await self._own_profile(session.user_id)
        return profile.name if profile is not None else "Student"

    async def _lookup_profile(
        self,
        user_id: str,
        message: str,
        registration_number: str | None,
    ) -> StudentProfile:
        """Profile for the registration number in the message, the user record, or the user id.

        Raises:
            NotFoundError: If no profile matches
        """
        if self.profiles is None:
            raise NotFoundError("profile", user_id)
        for number in (extract_registration_number(message), registration_number):
            if number:
                profile = await self.profiles.find_by_registration(number)
                if profile is not None:
                    return profile
        profile = await self.profiles.get(user_id)
        if profile is None:
            raise NotFoundError("profile", extract_registration_number(message) or registration_number or user_id)
        return profile

    # =========================================================================
    # Post-processing
    # =========================================================================

    def _finish(self, session: Session, answer: str, tag: SourceTag, greet_name: str | None) -> str:
        preferences = session.context.preferences
        answer = format_response(answer)
        if tag not in _UNTRIMMED_TAGS:
            answer = apply_length_preference(answer, preferences.get("answer_length"))
        answer = apply_style_preference(answer, preferences.get("response_style"))
        if greet_name and tag in _GREETED_TAGS:
            answer = with_greeting(answer, greet_name, session.context.department)
        return answer

    async def _maybe_summarize(self, session: Session, turn_count: int) -> None:
        threshold = self.config.sessions.summary_after_turns
        last = session.metadata.get("summarized_at", 0)
        if turn_count <= threshold or turn_count - last < threshold:
            return
        session.metadata["summarized_at"] = turn_count
        summary = await self.composer.summarize_memory(self.sessions.recent_turns(session))
        if summary:
            self.sessions.add_memory_summary(session, summary)
            logger.info(f"Stored memory summary for {session.user_id}/{session.label}")
