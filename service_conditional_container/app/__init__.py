"""
Conditional Container service package.

Decides whether a container's child content is shown to the current user by
evaluating author-defined conditions against the user's profile attributes,
and keeps track of every rendered copy of a container so the decision is
computed once and can be looked up by external callers. It provides:

- app.main: API surface for mounting containers, lookups and decisions.
- app.container: Mount flow tying host collaborators to the engine.
- app.rules: Rule model, value coercion and the evaluation engine.
- app.profile: Attribute lookups over the user's profile.
- app.registry: Instance registry and the backoff lookup service.

Guidelines:
- Evaluation is fail-closed; anything unexpected hides the container.
- Rule text is never executed as code.
- The registry is injected, never module-global.
"""
