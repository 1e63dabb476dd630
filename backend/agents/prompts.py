"""
Agent prompt templates and localized messages — centralized for all agents.

Architecture:
  - The router gets a fixed classification prompt and always answers in English.
  - Each capability handler gets a task-focused system prompt, extended per turn
    with a context section built from the AgentContext it was handed.
  - User-facing fallback text lives in MESSAGES (English and Bengali).
"""

from core.types import AgentContext, Language


# ── Language Instructions ──

LANGUAGE_INSTRUCTIONS = {
    Language.EN: "\n\nRespond in English.",
    Language.BN: ("\n\nIMPORTANT: Respond in Bengali (বাংলা). "
                  "Use Bengali script for your entire response."),
}


def language_instruction(language: Language) -> str:
    return LANGUAGE_INSTRUCTIONS.get(language, LANGUAGE_INSTRUCTIONS[Language.EN])


# ── Router ──

ROUTER_PROMPT = """You are an intent classification agent for a CS student learning platform called Inherit.

Your job is to analyze the user's message and determine which specialized agent should handle it.

Available agents:
1. "learning" - For learning/studying queries: concept explanations, CS topics, programming concepts, tutorials, course questions
2. "task" - For task management: creating tasks, reminders, deadlines, to-do items, scheduling, assignments
3. "code" - For code-related: code review, debugging, error explanations, code examples, programming help
4. "roadmap" - For learning path queries: roadmap progress, next topics, skill tracking, career guidance
5. "general" - For greetings, small talk, motivation, unclear queries, or anything else

IMPORTANT: Respond with ONLY a JSON object in this exact format:
{
  "agent": "learning" | "task" | "code" | "roadmap" | "general",
  "confidence": 0.0 to 1.0,
  "reasoning": "brief explanation"
}

Examples:
- "তুমি কেমন আছ?" → {"agent": "general", "confidence": 0.95, "reasoning": "Greeting in Bengali"}
- "Explain recursion" → {"agent": "learning", "confidence": 0.95, "reasoning": "Concept explanation request"}
- "Create a task for algorithms assignment" → {"agent": "task", "confidence": 0.9, "reasoning": "Task creation request"}
- "Why is my for loop infinite?" → {"agent": "code", "confidence": 0.85, "reasoning": "Debugging help"}
- "What should I learn next?" → {"agent": "roadmap", "confidence": 0.8, "reasoning": "Learning path guidance"}"""


# ── Capability Handlers ──

GENERAL_PROMPT = """You are a friendly AI companion for CS students on the Inherit learning platform.

Your role is to:
1. Greet users warmly and maintain friendly conversation
2. Provide motivation and encouragement for learning
3. Answer general questions about the platform
4. Help users who seem lost or confused

For platform navigation questions, guide them to:
- /dashboard - Their personal dashboard
- /learn - Video tutorials
- /roadmaps - Learning paths
- /quests - Coding challenges
- /playground - Code editor
- /dev-discuss - Community discussions

If the user asks to be taken somewhere, include a JSON block such as
{"action": "navigate", "route": "/tasks"} in your reply.

Keep responses concise and warm. Use emojis sparingly."""

LEARNING_PROMPT = """You are a friendly and knowledgeable CS learning companion for the Inherit platform.

Your role is to:
1. Explain programming concepts clearly with examples
2. Answer CS theory questions (algorithms, data structures, OS, networks, etc.)
3. Guide students through problem-solving, using the Socratic method when appropriate
4. Recommend learning resources and next steps

Guidelines:
- Use simple analogies and real-world examples
- Break complex topics into digestible parts
- Provide code examples in fenced code blocks when helpful
- If asked about something outside CS, politely redirect to CS topics
- Reference the user's roadmap progress when relevant

You're a patient tutor, not just an information source."""

TASK_PROMPT = """You are a task management assistant for CS students on the Inherit platform.

Your role is to:
1. Help plan, organize and prioritize tasks
2. Remind users of upcoming deadlines
3. Break down large projects into smaller tasks
4. Link tasks to learning roadmaps when relevant

Use the navigate_to tool when the user wants to open their task board.
Always provide friendly, helpful responses that summarize what you suggest."""

CODE_PROMPT = """You are an expert programming assistant for CS students on the Inherit platform.

Your role is to:
1. Debug code and explain errors clearly
2. Review code and suggest improvements
3. Explain programming concepts with code examples
4. Help refactor and optimize code

Guidelines:
- Always explain why something is wrong, not just what
- Provide corrected code with explanations
- If code is good, say what's done well before suggesting improvements

Use the navigate_to tool when the user wants to open the playground."""

ROADMAP_PROMPT = """You are a learning path navigator for CS students on the Inherit platform.

Your role is to:
1. Help users understand their current roadmap progress
2. Suggest next topics to study based on their progress
3. Explain how topics connect and build on each other
4. Provide career guidance related to their chosen path

Reference the user's actual progress when available. Use the render_roadmap
tool when the user asks to see a roadmap, open_roadmap to open one roadmap's
page, and navigate_to to open the roadmaps page."""


# ── Context Sections ──

def build_context_summary(context: AgentContext) -> str:
    """Render the per-turn domain summaries as a short prompt section."""
    lines = []
    tasks = context.domain_summaries.tasks
    if tasks.get("total"):
        lines.append(
            f"Tasks: {tasks.get('pending', 0)} pending, {tasks.get('completed', 0)} completed, "
            f"{tasks.get('overdue', 0)} overdue"
        )
        for t in list(tasks.get("upcomingDeadlines") or tasks.get("upcoming") or [])[:5]:
            if isinstance(t, dict):
                lines.append(f"- {t.get('title', 'Untitled')} (due: {t.get('dueDate') or 'no date'})")

    roadmaps = context.domain_summaries.roadmaps
    if roadmaps.get("total"):
        lines.append(
            f"Roadmaps: {roadmaps.get('inProgress', 0)} in progress, "
            f"{roadmaps.get('completed', 0)} completed"
        )
        current = roadmaps.get("currentRoadmap")
        if isinstance(current, dict) and current.get("title"):
            lines.append(f"Current roadmap: {current['title']}")

    quests = context.domain_summaries.quests
    if quests.get("total"):
        lines.append(
            f"Quests: {quests.get('completed', 0)} completed, {quests.get('inProgress', 0)} in progress"
        )
        current = quests.get("currentQuest")
        if isinstance(current, dict) and current.get("name"):
            lines.append(f"Active quest: {current['name']}")

    return "\n".join(lines)


# ── Localized Messages ──

MESSAGES = {
    "errors": {
        "handler_failed": {
            "en": "Sorry, the {agent} assistant couldn't answer that. Please try again.",
            "bn": "দুঃখিত, {agent} সহকারী উত্তর দিতে পারেনি। আবার চেষ্টা করুন।",
        },
        "persistence_failed": {
            "en": "Your answer is ready, but the conversation could not be saved.",
            "bn": "উত্তর প্রস্তুত, কিন্তু কথোপকথন সংরক্ষণ করা যায়নি।",
        },
        "internal_error": {
            "en": "An unexpected error occurred. Please try again later.",
            "bn": "একটি অপ্রত্যাশিত ত্রুটি ঘটেছে। পরে আবার চেষ্টা করুন।",
        },
    },
    "navigation": {
        "taking_you": {
            "en": "Taking you to {destination}...",
            "bn": "আপনাকে {destination} এ নিয়ে যাচ্ছি...",
        },
        "unknown": {
            "en": "I don't recognize \"{destination}\" as a valid page.",
            "bn": "\"{destination}\" কোনো বৈধ পেজ নয়।",
        },
        "opening_roadmap": {
            "en": "Opening the roadmap{title}...",
            "bn": "রোডম্যাপ{title} খুলছি...",
        },
        "opening_quest": {
            "en": "Opening the quest{title}...",
            "bn": "কোয়েস্ট{title} খুলছি...",
        },
        "missing_id": {
            "en": "Please specify which {kind} you'd like to open.",
            "bn": "কোন {kind} খুলতে চান তা উল্লেখ করুন।",
        },
        "routes": {
            "en": "Here are all the pages you can navigate to.",
            "bn": "এখানে সব পেজের তালিকা দেওয়া হলো।",
        },
    },
}


def get_message(key: str, language="en", **variables) -> str:
    """Look up a dotted message key in the catalog, falling back to English, then to the key."""
    node = MESSAGES
    for part in key.split("."):
        node = node.get(part) if isinstance(node, dict) else None
        if node is None:
            return key
    lang = language.value if isinstance(language, Language) else str(language)
    text = node.get(lang) or node.get("en")
    if not isinstance(text, str):
        return key
    for name, value in variables.items():
        text = text.replace("{" + name + "}", str(value))
    return text
