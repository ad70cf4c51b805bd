"""Chart configuration persistence, theming and the render pipeline.

Views never build chart options themselves: they hand triggers to a
`ChartLifecycleCoordinator`, which reads data through a data source, applies
the persisted per-chart configuration and emits render commands with theme
colors already resolved.
"""
