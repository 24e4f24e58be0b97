"""Built-in workflow and mindmap templates."""

from dataclasses import dataclass, field

from .models import NodeKind


@dataclass(frozen=True)
class WorkflowStep:
    kind: NodeKind
    title: str
    description: str = ""


@dataclass(frozen=True)
class WorkflowTemplate:
    name: str
    description: str
    steps: tuple[WorkflowStep, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MindmapTemplate:
    name: str
    central_topic: str
    branches: tuple[str, ...]


CUSTOM_TEMPLATE = "custom"

WORKFLOW_TEMPLATES: dict[str, WorkflowTemplate] = {
    "literature-review": WorkflowTemplate(
        name="Literature Review",
        description="Systematic review of academic and industry literature",
        steps=(
            WorkflowStep(NodeKind.SOURCE, "Gather Sources", "Search databases, web, internal docs"),
            WorkflowStep(NodeKind.PROCESS, "Filter & Categorize", "Apply inclusion criteria, tag by theme"),
            WorkflowStep(NodeKind.ANALYZE, "Extract Key Findings", "Quotes, data, methodologies"),
            WorkflowStep(NodeKind.ANALYZE, "Synthesize Themes", "Patterns, gaps, contradictions"),
            WorkflowStep(NodeKind.OUTPUT, "Generate Report", "Structured write-up with citations"),
        ),
    ),
    "competitive-analysis": WorkflowTemplate(
        name="Competitive Analysis",
        description="Analyze competitors and market positioning",
        steps=(
            WorkflowStep(NodeKind.SOURCE, "Identify Competitors", "Direct, indirect, aspirational"),
            WorkflowStep(NodeKind.PROCESS, "Collect Data", "Features, pricing, positioning, reviews"),
            WorkflowStep(NodeKind.ANALYZE, "Gap Analysis", "Compare against our offering"),
            WorkflowStep(NodeKind.ANALYZE, "SWOT Mapping", "Strengths, weaknesses, opportunities, threats"),
            WorkflowStep(NodeKind.OUTPUT, "Strategy Doc", "Recommendations with evidence"),
        ),
    ),
    "user-research": WorkflowTemplate(
        name="User Research",
        description="Understand users through interviews and observation",
        steps=(
            WorkflowStep(NodeKind.SOURCE, "Define Scope", "Research questions, target users"),
            WorkflowStep(NodeKind.PROCESS, "Collect Data", "Interviews, surveys, observations"),
            WorkflowStep(NodeKind.ANALYZE, "Code & Tag", "Affinity mapping, theme extraction"),
            WorkflowStep(NodeKind.ANALYZE, "Build Personas", "User archetypes with needs and goals"),
            WorkflowStep(NodeKind.OUTPUT, "Insights Deck", "Key findings and design implications"),
        ),
    ),
    "data-analysis": WorkflowTemplate(
        name="Data Analysis",
        description="Analyze quantitative data for insights",
        steps=(
            WorkflowStep(NodeKind.SOURCE, "Data Collection", "Gather datasets from various sources"),
            WorkflowStep(NodeKind.PROCESS, "Clean & Validate", "Missing values, outliers, formats"),
            WorkflowStep(NodeKind.ANALYZE, "Exploratory Analysis", "Statistics, distributions, correlations"),
            WorkflowStep(NodeKind.ANALYZE, "Deep Analysis", "Hypothesis testing, modeling"),
            WorkflowStep(NodeKind.OUTPUT, "Visualization & Report", "Charts, insights, recommendations"),
        ),
    ),
}

MINDMAP_TEMPLATES: dict[str, MindmapTemplate] = {
    "brainstorm": MindmapTemplate(
        "Brainstorming Session", "Central Idea", ("What", "Why", "How", "Who", "When")
    ),
    "project-plan": MindmapTemplate(
        "Project Planning", "Project Goal", ("Phase 1", "Phase 2", "Phase 3", "Resources", "Risks")
    ),
    "decision-tree": MindmapTemplate(
        "Decision Tree", "Decision", ("Option A", "Option B", "Option C", "Criteria")
    ),
    "swot": MindmapTemplate(
        "SWOT Analysis", "Topic", ("Strengths", "Weaknesses", "Opportunities", "Threats")
    ),
}


def custom_steps(titles: list[str]) -> list[WorkflowStep]:
    """Steps for user-titled workflows: source first, output last, process between."""
    steps = []
    last = len(titles) - 1
    for idx, title in enumerate(titles):
        if idx == 0:
            kind = NodeKind.SOURCE
        elif idx == last:
            kind = NodeKind.OUTPUT
        else:
            kind = NodeKind.PROCESS
        steps.append(WorkflowStep(kind, title))
    return steps


def template_catalog() -> dict:
    """JSON-friendly summary of the built-in templates."""
    return {
        "mindmap": {
            key: {"name": t.name, "centralTopic": t.central_topic, "branches": list(t.branches)}
            for key, t in MINDMAP_TEMPLATES.items()
        },
        "workflow": {
            key: {"name": t.name, "description": t.description, "steps": len(t.steps)}
            for key, t in WORKFLOW_TEMPLATES.items()
        },
    }
