"""Declarative provisioning binding for managed AMQP instances."""
