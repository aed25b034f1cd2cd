# Copyright (c) 2026 Heureum AI. All rights reserved.

"""
Prompt text used by the condensation collaborators and the summary tree.
"""

CONDENSE_SYSTEM_PROMPT = """
<role>
You are a summarization assistant. Your task is to create a detailed summary of
the conversation so far, paying close attention to the user's explicit requests
and the assistant's previous actions.
</role>

<instructions>
The summary should capture technical details, code patterns and decisions that
are essential for continuing the work without losing context.
Respond with the summary only. Do not call tools and do not continue the
conversation.
</instructions>
"""

CONDENSE_PROMPT = """
<instructions>
Summarize the conversation below. Structure the summary with these sections:
1. Previous Conversation: high-level flow of the whole conversation.
2. Current Work: what was being worked on just before this request.
3. Key Technical Concepts: technologies, conventions and frameworks discussed.
4. Relevant Files and Code: files examined, modified or created, with the
   important snippets.
5. Problem Solving: problems solved and ongoing troubleshooting.
6. Pending Tasks and Next Steps: outstanding work, quoting the most recent
   request verbatim where possible.
</instructions>

<conversation>
{conversation}
</conversation>
"""

SUMMARY_LEVEL_PROMPTS = {
    "detailed": """Create a detailed summary of the following conversation segment.
Include:
- All key decisions and their rationale
- Technical details and code changes
- File paths and function names mentioned
- Any issues or errors discussed
- Next steps or pending items

Be thorough but concise. Preserve important context.""",
    "standard": """Summarize this conversation segment, covering:
- Main topics discussed
- Key decisions made
- Important technical details
- Current status

Keep the summary focused and informative.""",
    "brief": """Create a brief summary of this conversation:
- Main topic
- Key outcomes
- Critical decisions

Be very concise while retaining essential information.""",
    "minimal": "Provide a one-paragraph summary capturing only the most critical points of this conversation.",
}

SEGMENT_PROMPT = """{instructions}

Target length: approximately {target_tokens} tokens.

Conversation to summarize:
{conversation}"""
