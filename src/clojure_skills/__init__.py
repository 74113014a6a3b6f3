"""clojure-skills — index and search Agent Skills for Clojure development.

Skill and prompt markdown files are synced into a local SQLite database
with FTS5 full-text search. The same database tracks implementation plans,
their task lists and tasks, the skills a plan relies on, and plan outcomes.
"""

__version__ = "0.1.0"

APP_NAME = "clojure-skills"
