"""Example external plugin: shout every outgoing message.

Try it with::

    plughost enable example-uppercase --dir ./plugins
    plughost list ./plugins
"""


class Uppercase:
    def on_enable(self):
        print("example-uppercase enabled")

    def process_outgoing(self, message, context=None):
        prefix = plugin_api.config.get("prefix", "")
        return prefix + message.upper()

    def on_config_change(self, config):
        print(f"prefix is now {config.get('prefix')!r}")


plugin = Uppercase
