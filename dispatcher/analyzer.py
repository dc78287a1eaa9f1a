"""Request analyzer that picks the best tool for a coding request.

Classification is keyword based:
- Each task type is scored by counting keyword substring matches.
- Complexity starts from a per-type base and is nudged by high/low
  complexity keywords and by the number of ``@file`` references.
- A priority-ordered decision list maps (task type, complexity) to a tool.

The analyzer is pure and deterministic. It never raises. Empty or
unrecognized input degrades to the lowest-confidence default, unless its
complexity alone already routes it to the reasoning tool.
"""

import re
from dataclasses import dataclass

from dispatcher.capabilities import GENERATION_TOOL, REASONING_TOOL
from dispatcher.models import TaskAnalysis, TaskType

# Declaration order breaks ties: first type reaching the max score wins
TASK_KEYWORDS: dict[TaskType, tuple[str, ...]] = {
    TaskType.ARCHITECTURE: (
        "architecture", "design", "structure", "pattern", "approach",
        "how should i", "best practice", "system design", "discuss",
    ),
    TaskType.QUICK_FIX: (
        "quick", "simple", "small", "minor", "tweak", "adjust",
    ),
    TaskType.REFACTORING: (
        "refactor", "restructure", "reorganize", "clean up", "optimize",
        "improve", "rewrite", "extract", "move", "rearrange",
    ),
    TaskType.DEBUGGING: (
        "debug", "fix", "bug", "error", "issue", "broken", "not working",
        "crash", "fail", "exception",
    ),
    TaskType.REVIEW: (
        "review", "check", "analyze", "audit", "inspect", "examine",
    ),
    TaskType.DOCUMENTATION: (
        "document", "docstring", "comment", "readme", "explain", "describe",
    ),
    TaskType.CODE_GENERATION: (
        "generate", "create", "scaffold", "add", "implement", "build",
        "new feature", "new component", "new function", "boilerplate",
    ),
}

HIGH_COMPLEXITY_KEYWORDS = (
    "architecture", "design", "system", "multiple", "across", "workspace",
    "entire", "whole", "comprehensive", "complete", "full", "all",
)

LOW_COMPLEXITY_KEYWORDS = (
    "single", "one", "just this", "only", "quick", "simple", "small",
    "minor", "one file", "this file",
)

BASE_COMPLEXITY: dict[TaskType, int] = {
    TaskType.ARCHITECTURE: 8,
    TaskType.REFACTORING: 6,
    TaskType.DEBUGGING: 5,
    TaskType.REVIEW: 5,
    TaskType.CODE_GENERATION: 4,
    TaskType.DOCUMENTATION: 3,
    TaskType.QUICK_FIX: 2,
}

DEFAULT_TASK_TYPE = TaskType.CODE_GENERATION

MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 10

# Above this, tasks go to the reasoning tool whatever their type
COMPLEX_THRESHOLD = 6

FILE_MARKER_PATTERN = re.compile(r"@(\S+)")


@dataclass(frozen=True)
class ToolChoice:
    tool: str
    confidence: float
    reasoning: str


FALLBACK_CHOICE = ToolChoice(
    REASONING_TOOL, 0.5, "Using default tool for general purpose handling"
)


def analyze(prompt: str, directory: str | None = None) -> TaskAnalysis:
    """Analyze a request and suggest the tool that should handle it.

    Args:
        prompt: Free-form task description
        directory: Project directory the task targets (recorded in reasoning)

    Returns:
        TaskAnalysis with task type, complexity, suggested tool and confidence
    """
    text = (prompt or "").lower().strip()

    task_type, matched = detect_task_type(text)
    affected_files = extract_file_references(prompt or "")
    complexity = calculate_complexity(text, task_type, len(set(affected_files)))

    if matched or complexity > COMPLEX_THRESHOLD:
        choice = select_tool(task_type, complexity)
    else:
        choice = FALLBACK_CHOICE

    reasoning = choice.reasoning
    if directory:
        reasoning = f"{reasoning} (affected directory: {directory})"

    return TaskAnalysis(
        task_type=task_type,
        complexity=complexity,
        suggested_tool=choice.tool,
        confidence=choice.confidence,
        reasoning=reasoning,
        affected_files=tuple(affected_files),
    )


def detect_task_type(text: str) -> tuple[TaskType, bool]:
    """Detect the task type of normalized text.

    Returns:
        Tuple of (task_type, matched); matched is False when no keyword hit
        and the default type was used
    """
    best_type = DEFAULT_TASK_TYPE
    best_score = 0

    for task_type, keywords in TASK_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword in text)
        if score > best_score:
            best_type, best_score = task_type, score

    return best_type, best_score > 0


def calculate_complexity(text: str, task_type: TaskType, file_count: int) -> int:
    """Calculate complexity on a 1-10 scale.

    Args:
        text: Normalized prompt
        task_type: Detected task type (sets the base value)
        file_count: Number of distinct ``@`` file markers
    """
    complexity = BASE_COMPLEXITY[task_type]

    complexity += sum(1 for keyword in HIGH_COMPLEXITY_KEYWORDS if keyword in text)
    complexity -= sum(1 for keyword in LOW_COMPLEXITY_KEYWORDS if keyword in text)

    if file_count > 3:
        complexity += 2
    elif file_count > 1:
        complexity += 1

    return max(MIN_COMPLEXITY, min(MAX_COMPLEXITY, complexity))


def extract_file_references(prompt: str) -> list[str]:
    """Extract ``@path`` references in order of appearance (without the ``@``)."""
    return FILE_MARKER_PATTERN.findall(prompt)


def select_tool(task_type: TaskType, complexity: int) -> ToolChoice:
    """Map task type and complexity to a tool. First matching rule wins."""
    # Complex reasoning, multi-file work
    if complexity > COMPLEX_THRESHOLD or task_type == TaskType.ARCHITECTURE:
        return ToolChoice(
            REASONING_TOOL,
            0.9,
            f"Complex task ({complexity}/10) requiring advanced reasoning "
            "and multi-file coordination",
        )

    # Fast generation, scaffolding
    if task_type == TaskType.CODE_GENERATION and complexity < 6:
        return ToolChoice(
            GENERATION_TOOL,
            0.85,
            "Code generation task best handled by specialized generation tool",
        )

    if task_type in (TaskType.DEBUGGING, TaskType.REFACTORING):
        return ToolChoice(
            REASONING_TOOL,
            0.8,
            "Task requires analysis and understanding of existing code",
        )

    if task_type in (TaskType.REVIEW, TaskType.ARCHITECTURE):
        return ToolChoice(
            REASONING_TOOL,
            0.9,
            "Task requires deep analysis and reasoning capabilities",
        )

    return FALLBACK_CHOICE
