import unittest

from topocore import policy
from topocore.model import DeviceKind, NodeConfig, OperatingSystem, Service


class TestServices(unittest.TestCase):
    def test_allowed_sets(self):
        self.assertIn(Service.DIRECTORY, policy.allowed_services(OperatingSystem.WINDOWS_SERVER))
        self.assertIn(Service.WEB_IIS, policy.allowed_services(OperatingSystem.WINDOWS_SERVER))
        self.assertNotIn(Service.SSH, policy.allowed_services(OperatingSystem.WINDOWS_SERVER))
        self.assertIn(Service.WEB_NGINX, policy.allowed_services(OperatingSystem.LINUX))
        self.assertNotIn(Service.DIRECTORY, policy.allowed_services(OperatingSystem.LINUX))
        self.assertEqual(policy.allowed_services(OperatingSystem.NONE), ())
        self.assertEqual(policy.allowed_services(None), ())

    def test_filter_keeps_order_and_drops_repeats(self):
        services = [Service.DNS, Service.SSH, Service.DIRECTORY, Service.DNS, Service.DHCP]
        self.assertEqual(
            policy.filter_services(services, OperatingSystem.LINUX),
            [Service.DNS, Service.SSH, Service.DHCP],
        )

    def test_change_os_drops_invalid_services(self):
        cfg = NodeConfig(name="SERVER-1", os=OperatingSystem.LINUX, services=[Service.SSH, Service.DNS])
        out = policy.change_os(cfg, OperatingSystem.WINDOWS_SERVER)
        self.assertEqual(out.os, OperatingSystem.WINDOWS_SERVER)
        self.assertEqual(out.services, [Service.DNS])
        # Input config untouched.
        self.assertEqual(cfg.services, [Service.SSH, Service.DNS])

    def test_toggle_service(self):
        cfg = NodeConfig(name="s", os=OperatingSystem.LINUX)
        cfg = policy.toggle_service(cfg, Service.FTP)
        self.assertEqual(cfg.services, [Service.FTP])
        cfg = policy.toggle_service(cfg, Service.FTP)
        self.assertEqual(cfg.services, [])


class TestKinds(unittest.TestCase):
    def test_only_servers_have_services(self):
        self.assertTrue(policy.supports_services(DeviceKind.SERVER))
        for kind in (DeviceKind.ROUTER, DeviceKind.SWITCH, DeviceKind.MULTILAYER_SWITCH, DeviceKind.PC):
            self.assertFalse(policy.supports_services(kind))
            self.assertNotIn("services", policy.config_fields(kind))

    def test_default_os(self):
        self.assertEqual(policy.default_os(DeviceKind.SERVER), OperatingSystem.LINUX)
        self.assertEqual(policy.default_os(DeviceKind.ROUTER), OperatingSystem.NONE)

    def test_config_fields(self):
        self.assertIn("os", policy.config_fields(DeviceKind.SERVER))
        self.assertIn("vlan", policy.config_fields(DeviceKind.SWITCH))
        self.assertNotIn("vlan", policy.config_fields(DeviceKind.ROUTER))


class TestEnumParsing(unittest.TestCase):
    def test_parse_accepts_values_names_labels_and_aliases(self):
        self.assertIs(DeviceKind.parse("router"), DeviceKind.ROUTER)
        self.assertIs(DeviceKind.parse("MULTILAYER_SWITCH"), DeviceKind.MULTILAYER_SWITCH)
        self.assertIs(DeviceKind.parse("Multilayer Switch"), DeviceKind.MULTILAYER_SWITCH)
        self.assertIs(DeviceKind.parse("pc"), DeviceKind.PC)
        self.assertIs(OperatingSystem.parse("Windows Server"), OperatingSystem.WINDOWS_SERVER)
        self.assertIs(Service.parse("AD"), Service.DIRECTORY)

    def test_parse_rejects_junk(self):
        self.assertIsNone(DeviceKind.parse(""))
        self.assertIsNone(DeviceKind.parse(7))
        self.assertIsNone(Service.parse("gopher"))


if __name__ == "__main__":
    unittest.main()
