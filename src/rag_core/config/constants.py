"""Fixed lexical tables shared by the query analysis and scoring stages.

Markers are matched against whole lowercase tokens, never substrings,
so that e.g. "qui" does not fire on "équipe".
"""

STOPWORDS = frozenset(
    {
        # English
        "a", "an", "and", "are", "as", "at", "be", "by", "do", "does", "for",
        "from", "has", "have", "in", "is", "it", "its", "of", "on", "or",
        "that", "the", "this", "to", "was", "were", "will", "with",
        # French
        "au", "aux", "ce", "ces", "dans", "de", "des", "du", "elle", "en",
        "est", "et", "il", "je", "la", "le", "les", "leur", "mon", "ma",
        "ne", "pas", "par", "pour", "que", "se", "sont", "sur", "un", "une",
    }
)

INTERROGATIVE_MARKERS = frozenset(
    {
        "pourquoi", "comment", "quand", "qui", "quoi", "où",
        "why", "how", "when", "who", "what", "where", "which",
    }
)

# Sentence-initial question words the capitalization rule would otherwise
# pick up as entities.
NON_ENTITY_WORDS = INTERROGATIVE_MARKERS | {"quel", "quelle", "quels", "quelles", "combien"}

COMPARISON_MARKERS = frozenset({"compare", "comparer", "différence", "difference", "versus", "vs"})

# First match wins, in this order.
QUERY_TYPE_MARKERS: tuple[tuple[str, frozenset[str]], ...] = (
    ("causal", frozenset({"pourquoi", "why", "cause", "raison", "reason"})),
    ("temporal", frozenset({"quand", "when"})),
    ("entity", frozenset({"qui", "who"})),
    ("comparative", COMPARISON_MARKERS),
    ("procedural", frozenset({"comment", "how", "explain", "expliquer", "étapes", "steps"})),
)

RELATIVE_TIME_KEYWORDS = frozenset(
    {
        "aujourd'hui", "hier", "demain", "semaine", "mois", "année", "récent", "dernier",
        "today", "yesterday", "tomorrow", "week", "month", "year", "recent", "latest",
    }
)

SCOPE_MARKERS: tuple[tuple[str, frozenset[str]], ...] = (
    ("temporal", frozenset({"quand", "date", "année", "when", "year"})),
    ("entity", frozenset({"qui", "personne", "auteur", "who", "person", "author"})),
    ("metadata", frozenset({"metadata", "source", "fichier", "file"})),
)

ANSWER_TYPE_MARKERS: tuple[tuple[str, frozenset[str]], ...] = (
    ("list", frozenset({"liste", "énumérer", "list", "enumerate"})),
    ("comparison", COMPARISON_MARKERS),
    ("explanation", frozenset({"comment", "expliquer", "explain", "how"})),
    ("process", frozenset({"étapes", "processus", "steps", "process"})),
)

TRANSITION_WORDS = frozenset(
    {
        "donc", "puis", "ensuite", "cependant", "ainsi",
        "moreover", "however", "therefore", "furthermore", "then",
    }
)

IGNORANCE_PHRASES = (
    "je ne sais pas",
    "ne peux pas répondre",
    "pas trouvé d'informations",
    "don't know",
    "do not know",
    "cannot answer",
    "could not find relevant information",
)

LOOKBACK_DAYS = 30
RECENT_CONTEXT_TURNS = 2
