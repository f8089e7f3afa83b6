"""
Table name inflection, backed by the ``inflection`` package.
"""

import inflection


def pluralize(word: str) -> str:
    """
    Plural form of ``word``.

    Plural input is returned unchanged, so ``pluralize("accounts")`` is
    ``"accounts"``; irregular and uncountable words follow ``inflection``.
    """
    return inflection.pluralize(str(word))
