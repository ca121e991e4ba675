"""Core generation package.

Architectural role:
    Hosts the question and answer pipelines together with the records, errors and
    settings they share.

Composition:
    - `types`, `errors`, `settings`: shared contracts and configuration.
    - `history`: per-user history and duplicate detection.
    - `decision`: pure per-attempt decision logic for the question loop.
    - `question_pipeline`, `answer_pipeline`: orchestration.

Package import itself is side-effect free apart from `load_dotenv()` in
`settings`.
"""
