"""Pure domain layer: clock, value types, vacancy status rules, calendar math."""
