from typing import Any, Dict, List


def chat(user: str, system: str = "") -> Dict[str, Any]:
    """Test case input: optional system prompt followed by one user turn."""
    messages: List[Dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": user})
    return {"messages": messages}
