"""Slack layer — the chat surface around the media pipeline.

Like ``cli``, this is an outermost layer: it may import from ``core``,
``infra`` and ``utils``, and nothing imports from it except ``cli``.
"""
