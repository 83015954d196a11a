"""Declarative HTTP and UI scenario assertions for the storefront.

Quick start::

    from storefront_qa.config import load_settings
    from storefront_qa.scenarios import ScenarioRunner, storefront_api_scenarios

    settings = load_settings()
    async with ScenarioRunner(settings) as runner:
        summary = await runner.run_all(storefront_api_scenarios(settings))
    print(summary.to_dict())
"""

__version__ = '0.1.0'
