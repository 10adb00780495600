"""Prompts for conversation segment summarization."""

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates concise, structured summaries of "
    "conversations. Always respond with valid JSON only."
)

SUMMARY_USER_PROMPT = """Analyze this conversation segment and create a concise summary. Focus on:
1. Key themes and topics discussed
2. Important facts, preferences, or information shared
3. Emotional tone or concerns expressed
4. Any decisions or commitments made

Conversation:
{transcript}

Provide your response as JSON with these fields:
- keyThemes: array of 3-5 main themes (strings)
- importantFacts: array of 3-7 important facts or preferences (strings)
- userPreferences: array of user preferences mentioned (strings)
- summaryText: a 2-3 sentence summary of the conversation segment
- emotionalTone: brief description of the emotional tone (e.g., "supportive", "concerned", "excited")"""

CONTEXT_WRAPPER = """# Conversation Memory

The following summaries describe earlier parts of this conversation. Use this context to maintain continuity.

{context}"""
