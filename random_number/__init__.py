"""Bootstrap an edge runtime, deploy a random number service, & query it."""
