from kubernetes.dynamic.exceptions import NotFoundError


def find_resource(name, namespace, k8s_api):
    try:
        res = k8s_api.get(name, namespace=namespace)
    except NotFoundError:
        return None
    else:
        return res.to_dict()


def delete_if_present(k8s_dynamic, api_version, kind, name):
    api = k8s_dynamic.resources.get(api_version=api_version, kind=kind)
    try:
        api.delete(name=name)
    except NotFoundError:
        pass
