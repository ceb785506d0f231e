"""KidGuard API: child-safety monitoring and guardian alerting."""
