"""Canned replies for the non-retrieval branches.

Every reply is produced in the working language; the assistant
translates the final answer once.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from vidya.models import ConcernType

if TYPE_CHECKING:
    from collections.abc import Sequence

    from vidya.models import EvidenceDocument, StudentProfile, TaskItem

# =============================================================================
# Greetings & scope
# =============================================================================


def greeting_reply(
    kind: str,
    name: str,
    department: str | None,
    assistant_name: str,
    institution: str,
) -> str:
    department_text = f" from the {department} department" if department else ""
    if kind == "hello":
        return (
            f"Hello {name}{department_text}! 👋 I'm {assistant_name}, the {institution} assistant. "
            "I'm here to help with anything related to your university experience: academics, "
            "campus life, admissions, or any questions you might have. How can I assist you today?"
        )
    if kind == "how_are_you":
        return (
            "I'm doing great, thank you for asking! 😊 I'm here and ready to help with any "
            f"university-related questions. What would you like to know about {institution} today?"
        )
    if kind == "thanks":
        return (
            "You're very welcome! 😊 I'm always happy to help. Is there anything else about "
            f"{institution} or your studies that you'd like to know?"
        )
    if kind == "bye":
        return (
            f"Goodbye {name}! 👋 Take care and come back anytime you have questions about "
            f"{institution}. Have a great day!"
        )
    return f"I understand! 👍 I'm here whenever you need help with anything related to {institution}. What would you like to know?"


def scope_reply(assistant_name: str, institution: str) -> str:
    return (
        f"I'm {assistant_name}, the {institution} assistant! 😊 I'm here to help with university-related "
        "questions.\n\n"
        "**I can help you with:**\n"
        "- Academic programs, syllabus and regulations (R22, R25)\n"
        "- Admissions, fees, scholarships, placements\n"
        "- Campus facilities: library, hostels, labs, timings\n"
        "- Departments, faculty, student services\n"
        "- Your to-dos, timetable and upcoming events\n"
        "- Study tips and academic support\n\n"
        "**What would you like to know?**"
    )


# =============================================================================
# Concern responses
# =============================================================================


def concern_reply(concern_type: ConcernType, name: str, institution: str) -> str:
    """Supportive reply for a detected concern, with helpline details."""
    if concern_type is ConcernType.SUICIDE:
        return f"""I'm really concerned about what you're sharing, {name}. 😔 Your life has value and meaning, even when it doesn't feel that way right now.

**Please know that you're not alone in this.**

Here are some resources that can help right now:
- **Crisis Helpline (India):** 9152987821 (24/7)
- **National Suicide Prevention Helpline:** 1800-599-0019
- **{institution} Counseling Center:** available on campus
- **Your family and friends** care about you deeply

**What you're feeling is temporary, even if it doesn't feel that way.** There are people who want to help you through this.

Would you like to talk about what's making you feel this way? I'm here to listen without judgment. 💙"""

    if concern_type is ConcernType.SELF_HARM:
        return f"""I'm worried about you, {name}. 💙 I can hear that you're going through a really tough time right now.

**Your safety is the most important thing.** Hurting yourself won't solve the problems you're facing, and there are better ways to cope with these feelings.

**You deserve support and care:**
- Talk to someone you trust: a friend, family member or counselor
- {institution} has counseling services available
- **Crisis Helpline (India):** 9152987821 (24/7)
- Remember that these feelings are temporary

**What's really bothering you?** I'm here to listen and support you. 🤗

You don't have to face this alone."""

    if concern_type in (ConcernType.DEPRESSION, ConcernType.ANXIETY):
        return f"""I can hear that you're struggling with some really difficult emotions, {name}. 😔 It takes courage to share these feelings, and you're not alone.

**What you're experiencing is valid and treatable.** Many students go through similar challenges, and there are effective ways to work through them.

**Here are some things that might help:**
- **Talk to someone:** a trusted friend, family member or counselor
- **University resources:** {institution} has counseling services for students
- **Professional help:** consider speaking with a mental health professional
- **Self-care:** keep a routine, get some fresh air, and be gentle with yourself

**What's been weighing on your mind lately?** I'm here to listen and support you. 💙

Seeking help is a sign of strength, not weakness."""

    if concern_type is ConcernType.ACADEMIC_STRESS:
        return f"""I completely understand how you're feeling, {name}. 😔 Academic pressure is one of the most common challenges students face, and it's normal to feel overwhelmed sometimes.

**You're not alone, and your feelings are valid.**

🎯 **Immediate Relief:**
- Take a deep breath; you've already taken the first step by reaching out
- One difficult period doesn't define your entire academic journey
- Your worth is not determined by grades

📚 **Academic Support Available:**
- **Academic Support Center:** tutoring and study groups
- **Professor Office Hours:** they want to help you succeed
- **Peer Study Groups:** connect with classmates facing similar challenges

💡 **Let's Problem-Solve Together:**
- Which subjects are causing the most stress?
- Is it time management, understanding concepts, or exam anxiety?

What would you like to focus on first? 🤝"""

    return f"""I can sense that you're going through a difficult time, {name}. 😔 Whatever you're facing, you don't have to handle it alone.

**Here are some ways to get help:**
- **Talk to someone you trust:** friends, family or a counselor
- **University resources:** {institution} has support services available
- **Professional help:** consider speaking with a mental health professional

**What's on your mind?** I'm here to listen. 💙"""


# =============================================================================
# Tasks
# =============================================================================

TASK_CREATE_HELP = (
    'Please list your homework or tasks, for example: homework: "Maths Unit 3", "DSA Sheet 2", "CN lab record".'
)
TASK_NO_MATCH = 'I couldn\'t match those items to your to-dos. Try quoting exact names like: "Maths", "DSA".'
TASKS_ALL_DONE = "Congratulations! 🎉 You've completed all your tasks for today. Great job!"
TASKS_EMPTY = (
    'No active to-dos for today. You can create new tasks by saying something like '
    '"Add homework: Math assignment, Physics lab report".'
)


def tasks_created_reply(created: int, remaining: int) -> str:
    return (
        f"I created {created} to-do item(s) for you. They will reset after midnight. "
        f'You have {remaining} task(s) for today. Say "show my to-dos" to review them.'
    )


def tasks_completed_reply(updated: int, remaining: int, cleared_all: bool = False) -> str:
    if updated == 0:
        return TASK_NO_MATCH
    if remaining == 0:
        return TASKS_ALL_DONE
    if cleared_all:
        return f"Marked all {updated} item(s) as completed for today."
    return f"Marked {updated} item(s) as completed. You have {remaining} task(s) remaining."


def task_list_reply(tasks: Sequence[TaskItem]) -> str:
    if not tasks:
        return TASKS_EMPTY
    lines = "\n".join(
        f"{i}. {'✅' if task.completed else '⬜'} {task.title}" for i, task in enumerate(tasks, start=1)
    )
    remaining = sum(1 for task in tasks if not task.completed)
    if remaining == 0:
        status = "\n\nCongratulations! 🎉 You have completed all your tasks for today!"
    else:
        status = f"\n\nYou have {remaining} task(s) remaining for today."
    return f"Here are your to-dos for today:\n{lines}{status}"


# =============================================================================
# Events
# =============================================================================


def _event_when(document: EvidenceDocument) -> str:
    parts = []
    if document.metadata.get("starts_at"):
        parts.append(f"Starts: {document.metadata['starts_at']}")
    if document.metadata.get("ends_at"):
        parts.append(f"Ends: {document.metadata['ends_at']}")
    if document.metadata.get("venue"):
        parts.append(f"Venue: {document.metadata['venue']}")
    return "\n".join(parts)


def event_card(document: EvidenceDocument) -> str:
    body = f"## {document.title}\n\n{document.body.strip()}"
    when = _event_when(document)
    return f"{body}\n\n{when}".strip() if when else body.strip()


def _event_lines(events: Sequence[EvidenceDocument]) -> str:
    return "\n".join(
        f"{i}. {event.title} - {event.body[:120]}{'...' if len(event.body) > 120 else ''}"
        for i, event in enumerate(events, start=1)
    )


def events_overview(events: Sequence[EvidenceDocument]) -> str:
    if not events:
        return "No events available yet."
    return f"Upcoming events:\n{_event_lines(events)}"


def event_not_found(events: Sequence[EvidenceDocument]) -> str:
    listing = _event_lines(events) if events else "No events available yet."
    return f"I could not find that event. Here are the latest events:\n{listing}"


# =============================================================================
# Utilities, course context, profile, schedule
# =============================================================================

STUDY_TIPS = (
    "Here are some study tips:\n"
    "1. Set a clear goal for each session.\n"
    "2. Use 25-30 minute focus blocks with 5-minute breaks.\n"
    "3. Practice active recall and spaced repetition.\n"
    "4. Summarize what you learned in your own words.\n"
    "5. Reduce distractions: notifications off, quiet space.\n"
    "6. Sleep well and stay hydrated."
)

SCHEDULE_MISSING = (
    "I could not find a timetable for you yet. Please upload your timetable using the "
    "Timetable section, then ask again."
)

PROFILE_NOT_FOUND = (
    "I couldn't find your student details. Please make sure your registration number is "
    "correct or contact the administrator."
)


def time_reply(now: datetime) -> str:
    return f"The current time is {now.strftime('%I:%M %p')}."


def date_reply(now: datetime) -> str:
    return f"Today's date is {now.day} {now.strftime('%B %Y')}."


def course_context_reply(department: str, year: str | None, institution: str) -> str:
    year_text = f" ({year})" if year else ""
    return (
        f"Yes, I know your course! You're from the **{department}** department{year_text} at {institution}. "
        f"As a {department} student, I can help with your program, courses, faculty and other "
        f"department-specific details. What would you like to know about your {department} program?"
    )


def profile_card(profile: StudentProfile) -> str:
    lines = ["Here are your student details:", ""]
    if profile.registration_number:
        lines.append(f"📚 **Registration Number**: {profile.registration_number}")
    lines.append(f"👤 **Name**: {profile.name}")
    for icon, label, value in (
        ("📧", "Email", profile.email),
        ("🏢", "Department", profile.department),
        ("🗓️", "Year", profile.year),
        ("📅", "Section", profile.section),
        ("📞", "Phone", profile.phone),
    ):
        if value:
            lines.append(f"{icon} **{label}**: {value}")
    if profile.extra:
        lines.append("")
        lines.append("**Additional Information**:")
        lines.extend(f"- **{key}**: {value}" for key, value in profile.extra.items())
    return "\n".join(lines)
