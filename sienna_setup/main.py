#!/usr/bin/env python

import argparse
import logging
import sys
import time

from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import HTTPError

from sienna_setup import config
from sienna_setup.errors import NoActiveContext, ObjectApplyFailed, SetupError, classify_api_error
from sienna_setup.k8s_resources import dump_access_bundle
from sienna_setup.kubeconfig import load_kubeconfig, with_cluster_credentials
from sienna_setup.orchestrator import bootstrap_access, render_credential, report_failure
from sienna_setup.selector import Prompter, open_prompt_stream, prompt_namespace, select_context
from sienna_setup.utils import get_dynamic_client


def build_parser():
    parser = argparse.ArgumentParser(
        description="""Create a service account with cluster wide access for
        the Sienna integration and print the API server URL, the certificate
        authority data and the token Sienna needs.""",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        type=str,
        help="Path to the kubeconfig file, defaults to $KUBECONFIG or ~/.kube/config.",
    )
    parser.add_argument(
        "--context",
        default=None,
        type=str,
        help="The kubeconfig context to use instead of the current one.",
    )
    parser.add_argument(
        "-n",
        "--namespace",
        default=None,
        type=str,
        help=f"""The namespace of the service account, it is created if missing.
        Defaults to '{config.DEFAULT_NAMESPACE}'.""",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Do not ask any questions, use the given or the default values.",
    )
    parser.add_argument(
        "--print-manifest",
        action="store_true",
        help="Only print the manifests so that an administrator can apply them.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every step.")
    return parser


def configure_logging(verbose=False):
    level = logging.WARNING
    if verbose or config.VERBOSE:
        level = logging.INFO
    if config.DEBUG:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def connect(context, kubeconfig_path, client_factory):
    try:
        return client_factory(context.name, kubeconfig_path)
    except ConfigException as err:
        raise NoActiveContext(f"Cannot use context '{context.name}'.", str(err)) from err
    except ApiException as err:
        raise classify_api_error(err, f"connect to the cluster of context {context.name}") from err


def run_setup(args, client_factory, sleep, prompter=None):
    print("🔧 Sienna Kubernetes Integration Setup")
    print("======================================")
    print()
    try:
        polling = config.token_polling()
        kubeconfig = load_kubeconfig(args.kubeconfig)
        context = select_context(kubeconfig, args.context, prompter)
        if args.namespace:
            namespace = args.namespace
        elif prompter is not None:
            namespace = prompt_namespace(prompter)
        else:
            namespace = config.DEFAULT_NAMESPACE
        if prompter is not None and not prompter.confirm(
            f"Set up Sienna in namespace '{namespace}' using context '{context.name}'?"
        ):
            print("Setup cancelled.")
            return 1

        # The client refuses a cluster without a server, check the kubeconfig before connecting
        context = with_cluster_credentials(kubeconfig, context)
        print(f"🚀 Creating Sienna service account in '{namespace}' namespace...")
        client = connect(context, args.kubeconfig, client_factory)
        credential = bootstrap_access(client, kubeconfig, context, namespace, polling=polling, sleep=sleep)
    except ValueError as err:
        print(f"❌ {err}", file=sys.stderr)
        return 1
    except HTTPError as err:
        failure = ObjectApplyFailed("Could not reach the Kubernetes API server.", str(err))
        print("\n".join(report_failure(failure)), file=sys.stderr)
        return 1
    except SetupError as err:
        print("\n".join(report_failure(err)), file=sys.stderr)
        return 1

    if not credential.is_complete():
        print("❌ The extracted credential is incomplete.", file=sys.stderr)
        return 1

    print("✅ Configuration extracted!")
    print()
    print("\n".join(render_credential(credential)))
    print("✅ Setup complete! You can now configure your Sienna integration.")
    return 0


def main(argv=None, client_factory=get_dynamic_client, sleep=time.sleep, prompter=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    if args.print_manifest:
        print(dump_access_bundle(args.namespace or config.DEFAULT_NAMESPACE), end="")
        return 0

    if prompter is not None or args.yes:
        return run_setup(args, client_factory, sleep, prompter)

    prompt_stream = open_prompt_stream()
    try:
        return run_setup(args, client_factory, sleep, Prompter(prompt_stream))
    finally:
        if prompt_stream is not sys.stdin:
            prompt_stream.close()


if __name__ == "__main__":
    sys.exit(main())
