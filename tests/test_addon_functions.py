"""
Unit tests for the addon orchestrator
Uses a mock cluster handle that records namespaces, roles and releases
"""

import unittest
from unittest.mock import Mock, patch
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from admiral.addons.functions import (
    build_helm_values,
    build_namespace_manifest,
    create_addon_resources,
)
from admiral.addons.types import (
    AddonDependency,
    AddonSpec,
    DeploymentMethod,
    HelmChartConfig,
    ServiceAccountConfig,
)
from admiral.cluster.functions import OidcIdentityProvider
from admiral.errors import (
    CycleError,
    DeploymentError,
    DuplicateNameError,
    SchemaError,
    UnknownDependencyError,
)


def make_addon(name, **kwargs):
    """Build a cdk-helm addon whose chart is named after the addon"""
    kwargs.setdefault("helm_config", HelmChartConfig(chart=name))
    return AddonSpec(name=name, **kwargs)


def make_cluster():
    """Mock cluster handle returning one Mock handle per call"""
    cluster = Mock()
    cluster.identity_provider = OidcIdentityProvider(
        arn="arn:aws:iam::123456789012:oidc-provider/oidc.eks.af-south-1.amazonaws.com/id/ABC",
        issuer_url="https://oidc.eks.af-south-1.amazonaws.com/id/ABC",
    )

    def apply_manifest(resource_id, manifest):
        handle = Mock()
        handle.resource_id = resource_id
        handle.manifest = manifest
        return handle

    def install_helm_chart(resource_id, **kwargs):
        release = Mock()
        release.resource_id = resource_id
        release.name = kwargs["release_name"]
        return release

    def create_federated_role(resource_id, role_name, identity_provider, claims,
                              policy_statements, tags=None):
        role = Mock()
        role.name = role_name
        role.arn = f"arn:aws:iam::123456789012:role/{role_name}"
        return role

    cluster.apply_manifest.side_effect = apply_manifest
    cluster.install_helm_chart.side_effect = install_helm_chart
    cluster.create_federated_role.side_effect = create_federated_role
    return cluster


class TestCreateAddonResources(unittest.TestCase):
    """Test ordering, validation and resource creation end to end"""

    def setUp(self):
        patcher = patch('admiral.addons.functions.pulumi')
        self.mock_pulumi = patcher.start()
        self.addCleanup(patcher.stop)
        self.cluster = make_cluster()

    def deploy(self, addons, dependencies=(), environment="dev"):
        return create_addon_resources(self.cluster, environment, "basic-cloud", addons, dependencies)

    def test_deploys_single_helm_addon(self):
        """Test a single enabled addon produces one release with the default name"""
        addon = make_addon(
            "metrics-server",
            helm_config=HelmChartConfig(
                chart="metrics-server",
                repository="https://kubernetes-sigs.github.io/metrics-server/",
                version="3.12.1",
            ),
            namespace="kube-system",
            values={"args": ["--kubelet-insecure-tls"]},
        )

        result = self.deploy([addon])

        self.assertEqual(len(result.helm_charts), 1)
        self.cluster.install_helm_chart.assert_called_once_with(
            "metrics-server-chart",
            chart="metrics-server",
            repository="https://kubernetes-sigs.github.io/metrics-server/",
            version="3.12.1",
            release_name="metrics-server-dev",
            namespace="kube-system",
            values={"args": ["--kubelet-insecure-tls"]},
            create_namespace=False,
            depends_on=[],
        )
        self.cluster.apply_manifest.assert_not_called()
        self.cluster.create_federated_role.assert_not_called()

    def test_release_name_override(self):
        """Test helmConfig.release_name replaces the <addon>-<env> default"""
        addon = make_addon("grafana", helm_config=HelmChartConfig(chart="grafana", release_name="dashboards"))

        result = self.deploy([addon], environment="prod")

        self.assertEqual(result.helm_charts[0].name, "dashboards")

    def test_creates_namespace_before_release(self):
        """Test namespace manifest is applied and the release depends on it"""
        addon = make_addon("cert-manager", namespace="cert-manager", create_namespace=True)

        result = self.deploy([addon])

        self.assertEqual(len(result.namespaces), 1)
        namespace = result.namespaces[0]
        self.assertEqual(namespace.resource_id, "cert-manager-namespace")
        self.assertEqual(namespace.manifest["kind"], "Namespace")
        self.assertEqual(namespace.manifest["metadata"]["name"], "cert-manager")

        kwargs = self.cluster.install_helm_chart.call_args.kwargs
        self.assertEqual(kwargs["depends_on"], [namespace])
        self.assertFalse(kwargs["create_namespace"])

    def test_namespace_requires_both_flags(self):
        """Test no namespace is created without a namespace name or without the flag"""
        addons = [
            make_addon("a", create_namespace=True),
            make_addon("b", namespace="b"),
        ]

        result = self.deploy(addons)

        self.assertEqual(result.namespaces, ())
        self.cluster.apply_manifest.assert_not_called()

    def test_service_account_role(self):
        """Test role naming, trust claims and values injection for a service account"""
        statement = {
            "Effect": "Allow",
            "Action": ["route53:ChangeResourceRecordSets"],
            "Resource": "arn:aws:route53:::hostedzone/*",
        }
        addon = make_addon(
            "external-dns",
            namespace="kube-system",
            service_account=ServiceAccountConfig(
                name="external-dns",
                namespace="kube-system",
                policy_statements=[statement],
            ),
            values={"provider": "aws"},
        )

        result = self.deploy([addon])

        role = result.get_service_account_role("external-dns")
        self.assertIsNotNone(role)
        self.assertEqual(role.name, "admiral-dev-sa-external-dns")

        args, kwargs = self.cluster.create_federated_role.call_args
        self.assertEqual(args[0], "external-dns-sa-role")
        self.assertEqual(args[1], "admiral-dev-sa-external-dns")
        self.assertIs(args[2], self.cluster.identity_provider)
        self.assertEqual(args[3], {
            "sub": "system:serviceaccount:kube-system:external-dns",
            "aud": "sts.amazonaws.com",
        })
        self.assertEqual(args[4], [statement])
        self.assertEqual(kwargs["tags"]["Project"], "admiral")
        self.assertEqual(kwargs["tags"]["Addon"], "external-dns")

        values = self.cluster.install_helm_chart.call_args.kwargs["values"]
        self.assertEqual(values["provider"], "aws")
        self.assertFalse(values["serviceAccount"]["create"])
        self.assertEqual(values["serviceAccount"]["name"], "external-dns")
        self.assertEqual(
            values["serviceAccount"]["annotations"]["eks.amazonaws.com/role-arn"],
            role.arn,
        )

    def test_role_without_helm_release(self):
        """Test a service account role is created even when nothing is installed by Helm"""
        addon = AddonSpec(
            name="backup-agent",
            deployment_method=DeploymentMethod.KUBECTL,
            service_account=ServiceAccountConfig(name="velero", namespace="velero"),
        )

        result = self.deploy([addon])

        self.assertEqual(result.helm_charts, ())
        self.assertIsNotNone(result.get_service_account_role("backup-agent"))
        self.assertIsNone(result.get_service_account_role("missing"))

    def test_skips_disabled_addons(self):
        """Test disabled addons create nothing but keep their slot in the order"""
        addons = [
            make_addon("enabled-addon"),
            make_addon(
                "disabled-addon",
                enabled=False,
                namespace="disabled",
                create_namespace=True,
                service_account=ServiceAccountConfig(name="sa", namespace="disabled"),
            ),
        ]

        result = self.deploy(addons)

        self.assertEqual(len(result.helm_charts), 1)
        self.assertEqual(set(result.deployment_order), {"enabled-addon", "disabled-addon"})
        self.assertTrue(result.is_addon_deployed("enabled-addon"))
        self.assertTrue(result.is_addon_deployed("disabled-addon"))
        self.assertFalse(result.is_addon_deployed("unknown"))
        self.assertEqual(result.namespaces, ())
        self.assertEqual(dict(result.service_accounts), {})

    def test_deployment_order_follows_dependencies(self):
        """Test dependencies are deployed first"""
        addons = [
            make_addon("cert-manager"),
            make_addon("ingress-nginx", depends_on=["cert-manager"]),
            make_addon("prometheus"),
        ]

        result = self.deploy(addons)

        order = list(result.deployment_order)
        self.assertLess(order.index("cert-manager"), order.index("ingress-nginx"))
        self.assertEqual(sorted(order), ["cert-manager", "ingress-nginx", "prometheus"])

        deployed = [call.args[0] for call in self.cluster.install_helm_chart.call_args_list]
        self.assertLess(deployed.index("cert-manager-chart"), deployed.index("ingress-nginx-chart"))

    def test_order_is_a_permutation_respecting_every_edge(self):
        """Test the order contains every addon once and honours all merged edges"""
        addons = [
            make_addon("app", depends_on=["ingress", "database"]),
            make_addon("ingress", depends_on=["cert-manager"]),
            make_addon("database", enabled=False),
            make_addon("cert-manager"),
            make_addon("monitoring", depends_on=["cert-manager"]),
        ]
        dependencies = [AddonDependency(addon="monitoring", depends_on=["database"])]

        result = self.deploy(addons, dependencies)

        order = list(result.deployment_order)
        self.assertEqual(len(order), len(addons))
        self.assertEqual(len(set(order)), len(addons))
        edges = [
            ("app", "ingress"), ("app", "database"), ("ingress", "cert-manager"),
            ("monitoring", "cert-manager"), ("monitoring", "database"),
        ]
        for dependent, dependency in edges:
            with self.subTest(edge=(dependent, dependency)):
                self.assertLess(order.index(dependency), order.index(dependent))

    def test_order_is_deterministic(self):
        """Test separate runs over the same input produce the same order"""
        addons = [
            make_addon("c", depends_on=["a"]),
            make_addon("b"),
            make_addon("a"),
        ]

        first = self.deploy(addons)
        second = create_addon_resources(make_cluster(), "dev", "basic-cloud", addons)

        self.assertEqual(first.deployment_order, second.deployment_order)
        self.assertEqual(first.deployment_order, ("a", "c", "b"))

    def test_circular_dependency(self):
        """Test a two-addon cycle fails before anything is created"""
        addons = [
            make_addon("addon-a", depends_on=["addon-b"]),
            make_addon("addon-b", depends_on=["addon-a"]),
        ]

        with self.assertRaises(CycleError) as ctx:
            self.deploy(addons)

        self.assertIn("Circular dependency detected", str(ctx.exception))
        self.cluster.install_helm_chart.assert_not_called()

    def test_duplicate_names(self):
        """Test duplicate names are reported once and nothing is deployed"""
        addons = [make_addon("duplicate"), make_addon("duplicate")]

        with self.assertRaises(DuplicateNameError) as ctx:
            self.deploy(addons)

        self.assertEqual(ctx.exception.duplicates, ["duplicate"])
        self.assertEqual(str(ctx.exception).count("duplicate"), 1)
        self.cluster.install_helm_chart.assert_not_called()

    def test_cdk_helm_without_helm_config(self):
        """Test a cdk-helm addon without helmConfig is rejected by name"""
        addons = [AddonSpec(name="test-addon", deployment_method=DeploymentMethod.CDK_HELM)]

        with self.assertRaises(SchemaError) as ctx:
            self.deploy(addons)

        self.assertIn("test-addon", str(ctx.exception))
        self.assertIn("must have helmConfig", str(ctx.exception))

    def test_unknown_dependency(self):
        """Test an external dependency on a missing addon is rejected"""
        addons = [make_addon("test-addon")]
        dependencies = [AddonDependency(addon="test-addon", depends_on=["non-existent-addon"])]

        with self.assertRaises(UnknownDependencyError) as ctx:
            self.deploy(addons, dependencies)

        self.assertIn("non-existent-addon", str(ctx.exception))
        self.assertIn("test-addon", str(ctx.exception))
        self.cluster.install_helm_chart.assert_not_called()

    def test_inline_dependency_outside_batch_is_ignored(self):
        """Test inline depends_on to an unknown addon only produces a warning"""
        addons = [make_addon("ingress-nginx", depends_on=["cert-manager"])]

        result = self.deploy(addons)

        self.assertEqual(result.deployment_order, ("ingress-nginx",))
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(result.warnings[0].addon, "ingress-nginx")
        self.assertIn("cert-manager", result.warnings[0].message)
        self.mock_pulumi.log.warn.assert_called_once()

    def test_non_helm_methods_are_not_executed(self):
        """Test kustomize/kubectl/helm-cli addons are accepted without creating releases"""
        addons = [
            AddonSpec(name="kustomized", deployment_method=DeploymentMethod.KUSTOMIZE),
            AddonSpec(
                name="cli-chart",
                deployment_method=DeploymentMethod.HELM_CLI,
                helm_config=HelmChartConfig(chart="argo-cd"),
            ),
        ]

        result = self.deploy(addons)

        self.assertEqual(result.helm_charts, ())
        self.assertEqual(result.deployment_order, ("kustomized", "cli-chart"))
        self.assertEqual([w.addon for w in result.warnings], ["kustomized", "cli-chart"])
        self.assertEqual(
            result.warnings[0].message,
            "deployment method 'kustomize' is not executed; no release created"
        )
        self.cluster.install_helm_chart.assert_not_called()

    def test_plain_string_method_warns_with_its_name(self):
        result = self.deploy([AddonSpec(name="manifests", deployment_method="kubectl")])

        self.assertIn("'kubectl'", result.warnings[0].message)

    def test_handle_errors_propagate_without_rollback(self):
        """Test a failing release stops the walk and keeps earlier resources"""
        install = self.cluster.install_helm_chart.side_effect

        def failing_install(resource_id, **kwargs):
            if resource_id == "second-chart":
                raise DeploymentError("chart repository unreachable")
            return install(resource_id, **kwargs)

        self.cluster.install_helm_chart.side_effect = failing_install
        addons = [make_addon("first"), make_addon("second"), make_addon("third")]

        with self.assertRaises(DeploymentError) as ctx:
            self.deploy(addons)

        self.assertEqual(str(ctx.exception), "chart repository unreachable")
        called = [call.args[0] for call in self.cluster.install_helm_chart.call_args_list]
        self.assertEqual(called, ["first-chart", "second-chart"])

    def test_result_is_read_only(self):
        """Test the returned mappings cannot be modified"""
        addon = make_addon("external-dns", service_account=ServiceAccountConfig(
            name="external-dns", namespace="kube-system"))

        result = self.deploy([addon])

        with self.assertRaises(TypeError):
            result.service_accounts["other"] = Mock()
        self.assertIsInstance(result.helm_charts, tuple)
        self.assertIsInstance(result.deployment_order, tuple)

    def test_get_addon(self):
        """Test the deployed addon definitions are queryable by name"""
        addon = make_addon("prometheus")

        result = self.deploy([addon])

        self.assertIs(result.get_addon("prometheus"), addon)
        self.assertIsNone(result.get_addon("grafana"))


class TestBuilders(unittest.TestCase):
    """Test manifest and values builders"""

    def test_namespace_manifest_labels(self):
        """Test namespace manifest carries the managed-by and addon labels"""
        manifest = build_namespace_manifest(make_addon("loki", namespace="logging"))

        self.assertEqual(manifest["apiVersion"], "v1")
        self.assertEqual(manifest["kind"], "Namespace")
        self.assertEqual(manifest["metadata"]["name"], "logging")
        self.assertEqual(manifest["metadata"]["labels"], {
            "app.kubernetes.io/managed-by": "admiral",
            "admiral.homelab/addon": "loki",
        })

    def test_values_without_role_are_copied(self):
        """Test values pass through untouched when no role exists"""
        addon = make_addon("loki", values={"replicas": 2})

        values = build_helm_values(addon)

        self.assertEqual(values, {"replicas": 2})
        self.assertIsNot(values, addon.values)

    def test_values_keep_caller_service_account_settings(self):
        """Test injected keys override while other serviceAccount settings survive"""
        addon = make_addon(
            "loki",
            service_account=ServiceAccountConfig(name="loki", namespace="logging"),
            values={"serviceAccount": {
                "create": True,
                "automountServiceAccountToken": False,
                "annotations": {"team": "observability"},
            }},
        )
        role = Mock()
        role.arn = "arn:aws:iam::123456789012:role/admiral-dev-sa-loki"

        values = build_helm_values(addon, role)

        self.assertEqual(values["serviceAccount"], {
            "create": False,
            "name": "loki",
            "automountServiceAccountToken": False,
            "annotations": {
                "team": "observability",
                "eks.amazonaws.com/role-arn": role.arn,
            },
        })
        # caller's values are not mutated
        self.assertTrue(addon.values["serviceAccount"]["create"])
        self.assertEqual(addon.values["serviceAccount"]["annotations"], {"team": "observability"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
