"""
Rules engine package.

Defines the condition model and the evaluation engine that decides
container visibility. Conditions are evaluated structurally in author
order and the first decisive condition settles the decision.

Modules of interest:
- models: Rule, container configuration and evaluation results.
- coercion: Attribute value classification and string/number forms.
- engine: Single-rule and rule-set evaluation.
"""
