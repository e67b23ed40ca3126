"""Evidence-grounded answer composition.

The composer turns an ``EvidenceBundle`` into one working-language
answer and the tag of the branch that produced it:

- a close FAQ match is answered directly from the FAQ
- any other evidence is handed to the generation capability together with
  the session context; if generation fails, the best evidence is quoted
- with no evidence at all the generation capability answers on its own,
  and a canned reply covers its failure
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from vidya.composer.formatting import with_source
from vidya.config import RetrievalConfig
from vidya.integrations.generation import FALLBACK_REPLY, generate_or_fallback
from vidya.models import Corpus, SourceTag, Turn
from vidya.query.aggregator import EvidenceAggregator
from vidya.query.retriever import evidence_text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from vidya.integrations.generation import GenerationClient
    from vidya.models import Session, StudentProfile
    from vidya.query.retriever import EvidenceBundle

logger = logging.getLogger(__name__)

HISTORY_TURNS = 8
KNOWLEDGE_EXCERPT = 500
SHORT_EXCERPT = 300

MEMORY_PROMPT = (
    "Create a concise, user-centric memory for future personalization. Capture department, "
    "interests, goals, tone, and recurring topics in <= 60 words.\n\nConversation:\n{conversation}"
)


@dataclass
class ComposedAnswer:
    """Answer text plus provenance."""

    text: str
    source_tag: SourceTag
    generated: bool = False


def _excerpt(text: str, limit: int) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class ResponseComposer:
    """Builds answers from evidence and session context.

    Args:
        generation: Generation capability, None for extractive answers only
        assistant_name: Persona name used in the system prompt
        institution_name: Institution the assistant serves
        config: Retrieval configuration (direct-answer threshold)
    """

    def __init__(
        self,
        generation: GenerationClient | None,
        assistant_name: str = "Vidya",
        institution_name: str = "the university",
        config: RetrievalConfig | None = None,
    ) -> None:
        self.generation = generation
        self.assistant_name = assistant_name
        self.institution_name = institution_name
        self.config = config or RetrievalConfig()

    # =========================================================================
    # Prompt construction
    # =========================================================================

    def build_system_prompt(self, session: Session, profile: StudentProfile | None = None) -> str:
        """Persona, user profile and session context as a system instruction."""
        lines = [
            f"You are {self.assistant_name}, the AI assistant of {self.institution_name}: a warm, "
            "caring and knowledgeable companion for students.",
            "",
            "CONVERSATION STYLE:",
            "- Be friendly, empathetic and concise; use simple language",
            "- Structure information with bullet points and headers when helpful",
            "- Use the provided context first; if you don't know something, say so",
            "- Keep times, dates, names and course codes exactly as given",
            "- End with a helpful follow-up question",
            "",
            "CURRENT USER CONTEXT:",
        ]

        context = session.context
        name = context.name or (profile.name if profile else None)
        lines.append(f"- Name: {name or 'Student'}")
        if profile is not None:
            if profile.registration_number:
                lines.append(f"- Registration Number: {profile.registration_number}")
            if profile.section:
                lines.append(f"- Section: {profile.section}")
        department = context.department or (profile.department if profile else None)
        year = context.year or (profile.year if profile else None)
        if department:
            lines.append(f"- Department: {department}")
        if year:
            lines.append(f"- Year: {year}")
        if context.interests:
            lines.append(f"- Interests: {', '.join(sorted(context.interests))}")
        if context.goals:
            lines.append(f"- Academic Goals: {', '.join(sorted(context.goals))}")
        for summary in session.memory_summaries:
            lines.append(f"- Memory: {summary}")

        if session.turns:
            lines.extend(
                [
                    "",
                    "CONVERSATION CONTEXT:",
                    "- Remember what the user has told you in previous messages",
                    "- Don't ask for information they've already provided",
                ]
            )
        return "\n".join(lines)

    def build_context_block(self, question: str, bundle: EvidenceBundle) -> str:
        """The user message followed by every piece of evidence, by section."""
        sections = [question]

        if bundle.faqs:
            sections.append(
                "Relevant FAQs:\n"
                + "\n\n".join(f"Q: {item.fields['question']}\nA: {item.fields['answer']}" for item in bundle.faqs)
            )
        if bundle.events:
            sections.append("Relevant Events:\n" + "\n\n".join(evidence_text(item) for item in bundle.events))
        if bundle.knowledge:
            sections.append(
                "Relevant Knowledge:\n"
                + "\n\n".join(
                    f"{item.document.title}:\n{_excerpt(item.document.body, KNOWLEDGE_EXCERPT)}"
                    for item in bundle.knowledge
                )
            )
        if bundle.chat_history:
            sections.append(
                "Relevant Past Conversations:\n"
                + "\n\n".join(_excerpt(evidence_text(item), SHORT_EXCERPT) for item in bundle.chat_history)
            )
        if bundle.profiles:
            sections.append(
                "User Context:\n"
                + "\n\n".join(_excerpt(item.document.body, SHORT_EXCERPT) for item in bundle.profiles)
            )
        if bundle.web:
            sections.append(
                "Web Search Results:\n" + "\n".join(f"- {result.title}: {result.snippet}" for result in bundle.web)
            )
        if bundle.pages:
            sections.append(
                "Extracted URL Content:\n"
                + "\n\n".join(f"From {page.url}:\n{_excerpt(page.content, SHORT_EXCERPT)}" for page in bundle.pages)
            )
        return "\n\n".join(sections)

    # =========================================================================
    # Composition
    # =========================================================================

    def _direct_faq(self, bundle: EvidenceBundle) -> str | None:
        if not bundle.faqs:
            return None
        best = max(bundle.faqs, key=lambda item: item.score)
        if best.score < self.config.direct_answer_similarity:
            return None
        logger.debug(f"Direct FAQ answer (score={best.score:.3f}): {best.document.title!r}")
        return best.fields.get("answer") or best.document.body

    def _extractive(self, bundle: EvidenceBundle) -> tuple[str, str] | None:
        ranked = EvidenceAggregator.prioritized(bundle)
        if ranked:
            top = ranked[0]
            if top.corpus is Corpus.FAQ:
                return top.fields.get("answer") or top.document.body, top.corpus.value
            return evidence_text(top), top.corpus.value
        if bundle.web:
            result = bundle.web[0]
            return f"{result.title}\n\n{result.snippet}", "web"
        return None

    async def compose(
        self,
        question: str,
        bundle: EvidenceBundle,
        session: Session,
        history: Sequence[Turn] = (),
        profile: StudentProfile | None = None,
    ) -> ComposedAnswer:
        """Compose an answer for ``question``.

        Args:
            question: User message in the working language
            bundle: Evidence gathered for the message
            session: Current session (context, memory summaries)
            history: Recent turns, oldest first
            profile: Current user's profile, if known

        Returns:
            Composed answer with its source tag
        """
        direct = self._direct_faq(bundle)
        if direct:
            return ComposedAnswer(with_source(direct, Corpus.FAQ.value), SourceTag.KNOWLEDGE)

        primary = EvidenceAggregator.primary_source(bundle)
        if primary is None:
            tag = SourceTag.GENERATION
        elif primary == "web" or (bundle.web and not bundle.has_ranked_results):
            tag = SourceTag.WEB
        else:
            tag = SourceTag.KNOWLEDGE

        turns = [*list(history)[-HISTORY_TURNS:], Turn(role="user", text=self.build_context_block(question, bundle))]
        text, generated = await generate_or_fallback(
            self.generation,
            turns,
            system_prompt=self.build_system_prompt(session, profile),
        )
        if generated:
            return ComposedAnswer(text, tag, generated=True)

        extract = self._extractive(bundle)
        if extract is not None:
            body, source = extract
            logger.info(f"Answering extractively from {source}")
            return ComposedAnswer(with_source(body, source), tag)

        name = session.context.name or "Student"
        return ComposedAnswer(
            f"I'm here to help you, {name}! 😊 {FALLBACK_REPLY}",
            SourceTag.GENERATION,
        )

    async def summarize_memory(self, turns: Sequence[Turn]) -> str | None:
        """Ask the generation capability for a short memory summary.

        Returns:
            Summary text, or None when generation is unavailable or fails
        """
        if self.generation is None or not turns:
            return None
        conversation = "\n".join(f"{turn.role}: {turn.text}" for turn in turns)
        text, generated = await generate_or_fallback(
            self.generation,
            [Turn(role="user", text=MEMORY_PROMPT.format(conversation=conversation))],
            fallback="",
        )
        if not generated:
            return None
        return text.strip() or None
