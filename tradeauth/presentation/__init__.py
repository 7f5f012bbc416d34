"""HTTP presentation layer: guard middleware, auth dependencies, envelopes."""
