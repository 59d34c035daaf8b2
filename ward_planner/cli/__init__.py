# ward_planner/cli/__init__.py
