"""Open / adjust / payback-withdraw / close strategies and dispatch."""
