"""
The `companion` package talks to the language model on behalf of a user.

Contents
--------
- agent
    `CompanionAgent`, which windows client history, builds the message list
    and calls the Gemini chat model through langchain.

- core.prompt
    System prompts for the greeting and conversation modes.

- core.memory
    Trailing history window (the server keeps no memory of its own).
"""
