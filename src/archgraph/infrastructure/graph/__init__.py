"""Architecture graph: model, build, analysis, cache, and engine."""
