from kubernetes import config as k8s_config, dynamic


def get_dynamic_client(context_name, kubeconfig_path=None):
    """
    Create a dynamic client bound to a specific kubeconfig context without
    touching the global default configuration of the kubernetes package.
    """
    api_client = k8s_config.new_client_from_config(
        config_file=kubeconfig_path,
        context=context_name,
    )
    return dynamic.DynamicClient(api_client)


def get_api(client, api_version, kind):
    """Get the proper API for a certain resource kind."""
    return client.resources.get(api_version=api_version, kind=kind)
