"""
Screening Service package.

Evaluates donor intake submissions against administrator-maintained
eligibility rules and records a recommendation for the approval workflow:

- app.main: API surface for rule management, evaluation and health.
- app.rules: Rule model, field resolution, evaluation engine and rule store.
- app.evaluation: Single-submission evaluation and batch orchestration.
- app.persistence: PostgreSQL and in-memory storage backends.

Guidelines:
- The engine is pure; persistence happens in app.evaluation.
- Evaluations overwrite the previous result on a submission.
- Keep evaluation deterministic and observable (metrics + logs).
"""
