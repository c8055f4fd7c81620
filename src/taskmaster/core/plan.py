"""Turn free text into task drafts.

Three input shapes are understood:

* a single block - title line, bullet subtasks, description lines;
* a batch - several blocks separated by ``###``;
* a plan - blank-line separated paragraphs, one task each, with
  priorities and subtasks guessed from the wording.

Parsing never touches the store; the lifecycle engine assigns ids.
"""

from __future__ import annotations

import math
import re

from taskmaster.models.task import DEFAULT_DESCRIPTION, Priority, TaskDraft

PRIORITY_TAG_PATTERN = re.compile(r"\[(?:p|priority|приоритет)\s*[:=]?\s*([1-3])\]", re.IGNORECASE)
SUBTASK_PATTERN = re.compile(r"^(?:[-*]|\d+\.)\s+(.+)$")
BATCH_SEPARATOR = "###"
PARAGRAPH_SEPARATOR = re.compile(r"\r?\n\s*\r?\n")

PLAN_DESCRIPTION = "Created from a plan discussion"

LOW_PRIORITY_KEYWORDS = (
    "optional",
    "nice to have",
    "low priority",
    "later",
    "in the future",
    "опционально",
    "дополнительно",
    "низкий приоритет",
    "потом",
    "в будущем",
)

HIGH_PRIORITY_KEYWORDS = (
    "important",
    "critical",
    "urgent",
    "high priority",
    "required",
    "must",
    "важно",
    "критично",
    "срочно",
    "высокий приоритет",
    "необходимо",
    "обязательно",
)

ACTION_VERBS = (
    "create",
    "develop",
    "implement",
    "add",
    "write",
    "test",
    "deploy",
    "install",
    "создать",
    "разработать",
    "реализовать",
    "добавить",
    "написать",
    "тестировать",
    "внедрить",
    "установить",
)

ACTION_SENTENCE_PATTERN = re.compile(
    r"(?=[A-ZА-ЯЁ])([^.!?]*?\b(?i:" + "|".join(ACTION_VERBS) + r")[^.!?]*[.!?])"
)


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b", re.IGNORECASE)


LOW_PRIORITY_PATTERN = _keyword_pattern(LOW_PRIORITY_KEYWORDS)
HIGH_PRIORITY_PATTERN = _keyword_pattern(HIGH_PRIORITY_KEYWORDS)

STARTER_PLAN = [
    (
        "Project planning",
        1,
        "Define the main requirements and plan the work",
        [
            "Define project goals and requirements",
            "Write the technical specification",
            "Estimate timeline and resources",
            "Create the work plan",
        ],
    ),
    (
        "Architecture design",
        1,
        "Design the project architecture and choose the technologies",
        [
            "Choose the technology stack",
            "Design the database structure",
            "Define APIs and interfaces",
            "Draw the architecture diagram",
        ],
    ),
    (
        "Development environment setup",
        1,
        "Prepare the environment for development and testing",
        [
            "Set up the code repository",
            "Set up CI/CD",
            "Set up the test environment",
            "Install required tools and dependencies",
        ],
    ),
    (
        "Core development",
        2,
        "Build the main components and features",
        [
            "Develop the data models",
            "Implement the business logic",
            "Develop the user interface",
            "Integrate the components",
        ],
    ),
    (
        "Testing",
        2,
        "Test the project at every level",
        [
            "Write unit tests",
            "Run integration tests",
            "Run performance tests",
            "Run user acceptance tests",
        ],
    ),
    (
        "Documentation",
        3,
        "Write the project documentation",
        [
            "Document the API",
            "Write the user guide",
            "Write developer documentation",
            "Document the architecture",
        ],
    ),
    (
        "Deployment",
        2,
        "Prepare the release and deploy the project",
        [
            "Set up the production environment",
            "Set up monitoring and logging",
            "Write deployment scripts",
            "Test the deployment process",
        ],
    ),
]


def _split_lines(text: str) -> list[str]:
    """Non-blank lines; a literal backslash-n counts as a line break."""
    text = text.replace("\\n", "\n")
    return [line.strip() for line in text.splitlines() if line.strip()]


def _truncate_words(title: str, max_words: int) -> str:
    words = title.split()
    if len(words) <= max_words:
        return title
    return " ".join(words[:max_words]) + "..."


def parse_task_block(
    text: str,
    default_description: str = DEFAULT_DESCRIPTION,
    max_title_words: int | None = None,
    default_priority: int = Priority.MEDIUM.value,
) -> TaskDraft | None:
    """Parse one task from a block of text.

    The first non-blank line is the title. Lines starting with ``-``,
    ``*`` or ``N.`` are subtasks. A ``[P:1]`` style tag on the title (or
    on any later line) sets the priority. Everything else is the
    description.

    Returns None for blank input.
    """
    lines = _split_lines(text)
    if not lines:
        return None

    title, *body = lines
    priority = default_priority

    tag = PRIORITY_TAG_PATTERN.search(title)
    if tag:
        priority = int(tag.group(1))
        title = PRIORITY_TAG_PATTERN.sub("", title).strip()
    else:
        for line in body:
            tag = PRIORITY_TAG_PATTERN.search(line)
            if tag:
                priority = int(tag.group(1))
                break

    subtasks: list[str] = []
    description_lines: list[str] = []
    for line in body:
        match = SUBTASK_PATTERN.match(line)
        if match:
            subtasks.append(match.group(1).strip())
        elif not PRIORITY_TAG_PATTERN.fullmatch(line):
            description_lines.append(line)

    description = "\n".join(description_lines)
    if max_title_words is not None:
        short_title = _truncate_words(title, max_title_words)
        if short_title != title and not description:
            description = title
        title = short_title

    if not title:
        return None

    return TaskDraft(
        title=title,
        description=description or default_description,
        priority=priority,
        subtasks=subtasks,
    )


def parse_batch(
    text: str,
    default_description: str = DEFAULT_DESCRIPTION,
    default_priority: int = Priority.MEDIUM.value,
) -> list[TaskDraft]:
    """Parse several task blocks separated by ``###``."""
    drafts = []
    for block in text.split(BATCH_SEPARATOR):
        draft = parse_task_block(block, default_description, default_priority=default_priority)
        if draft is not None:
            drafts.append(draft)
    return drafts


def _plan_priority(index: int, paragraph: str) -> int:
    if LOW_PRIORITY_PATTERN.search(paragraph):
        return Priority.LOW.value
    if HIGH_PRIORITY_PATTERN.search(paragraph):
        return Priority.HIGH.value
    return min(max(math.ceil((index + 1) / 3), Priority.HIGH.value), Priority.LOW.value)


def _overlaps(sentence: str, existing: list[str]) -> bool:
    lowered = sentence.lower()
    return any(lowered in item.lower() or item.lower() in lowered for item in existing)


def parse_plan(text: str) -> list[TaskDraft]:
    """Parse a free-form plan, one task per paragraph.

    Earlier paragraphs get higher priority (three per level) unless the
    paragraph says otherwise with words like "optional" or "critical".
    Subtasks are the bullet lines plus any sentence in the paragraph
    body that describes an action ("Implement the parser.").
    """
    drafts = []
    paragraphs = [p for p in PARAGRAPH_SEPARATOR.split(text.replace("\\n", "\n")) if p.strip()]

    for index, paragraph in enumerate(paragraphs):
        title, *body = _split_lines(paragraph)

        subtasks = []
        prose = []
        for line in body:
            match = SUBTASK_PATTERN.match(line)
            if match:
                subtasks.append(match.group(1).strip())
            else:
                prose.append(line)

        for match in ACTION_SENTENCE_PATTERN.finditer(" ".join(prose)):
            sentence = match.group(1).strip()
            if not _overlaps(sentence, subtasks):
                subtasks.append(sentence)

        drafts.append(
            TaskDraft(
                title=title,
                description="\n".join(prose) or PLAN_DESCRIPTION,
                priority=_plan_priority(index, paragraph),
                subtasks=subtasks,
            )
        )

    return drafts


def starter_plan() -> list[TaskDraft]:
    """Default skeleton for a software project, used when a plan is empty."""
    return [
        TaskDraft(title=title, description=description, priority=priority, subtasks=list(subtasks))
        for title, priority, description, subtasks in STARTER_PLAN
    ]
