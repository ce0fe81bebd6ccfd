"""
Rules engine package.

Defines the rule and effect models and the pipeline that applies them:
conditions are evaluated against a context, folded per rule, and the
effects of matching rules are applied on top of the default effects.

Modules of interest:
- models: Condition, Effect union, Rule, RenderContext, request payloads.
- state: AppliedEffectsState and the initial state factory.
- conditions / matcher / applier: the three evaluation stages.
- engine: RuleEngine orchestrating a render pass.
"""
