"""
Provisioning steps.

Each module registers one step with kralpanel.registry.StepRegistry when it
is imported; see kralpanel.provisioner.load_all_steps.
"""
