"""
Screening rules package.

Defines the rule model and the evaluation pipeline used by the Screening
Service. Rules compare one submission field against a typed value; matched
rules become flags that drive the score and the recommendation.

Modules of interest:
- models: Rule, submission, flag and result data classes plus API models.
- comparison: Write-time coercion of authored values into typed comparisons.
- fields: Closed set of supported field paths and their accessors.
- evaluator: Single-rule comparison.
- engine: Aggregation into score, recommendation and summary.
- store: Validated rule CRUD on top of a persistence backend.
"""
