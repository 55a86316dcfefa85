import pytest

from builders import behavior_model, normal, session_efsm
from plangen.model import (
    Action,
    Assertion,
    BehaviorMix,
    Guard,
    GuardActionParameter,
    Parameter,
    ParameterType,
    Property,
    RelativeFrequency,
    WorkloadIntensity,
    WorkloadModel,
)


SHOP_MODEL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<workloadModel>
  <workloadIntensity type="constant" formula="10"/>
  <services>
    <service name="Login"/>
    <service name="Browse"/>
    <service name="Checkout"/>
  </services>
  <guardActionParameters>
    <parameter name="loggedIn" type="boolean"/>
    <parameter name="items" type="integer" sourceName="Checkout" targetName="Browse"/>
  </guardActionParameters>
  <sessionLayerEFSM initialState="as_login">
    <applicationState eId="as_login" service="Login">
      <protocolLayerEFSM initialState="ps_form">
        <protocolState eId="ps_form">
          <request type="http" eId="r_login_form">
            <property key="HTTPSampler.path" value="/login"/>
            <property key="HTTPSampler.method" value="GET"/>
          </request>
          <protocolTransition target="ps_submit"/>
        </protocolState>
        <protocolState eId="ps_submit">
          <request type="http" eId="r_login_submit">
            <property key="HTTPSampler.path" value="/login"/>
            <property key="HTTPSampler.method" value="POST"/>
            <parameter name="user" value="alice;bob"/>
            <assertion patternToTest="Welcome"/>
          </request>
          <protocolTransition target="ps_exit"/>
        </protocolState>
        <protocolExitState eId="ps_exit"/>
      </protocolLayerEFSM>
      <applicationTransition target="as_browse">
        <guard parameter="loggedIn" negate="false"/>
        <action parameter="loggedIn"/>
      </applicationTransition>
    </applicationState>
    <applicationState eId="as_browse" service="Browse">
      <protocolLayerEFSM>
        <protocolState eId="ps_browse">
          <request type="java" eId="r_browse">
            <parameter name="category" value="books"/>
          </request>
          <protocolTransition target="ps_exit"/>
        </protocolState>
        <protocolExitState eId="ps_exit"/>
      </protocolLayerEFSM>
      <applicationTransition target="as_checkout">
        <guard parameter="loggedIn" negate="true"/>
        <guard parameter="items"/>
      </applicationTransition>
      <applicationTransition target="as_browse">
        <action parameter="items"/>
      </applicationTransition>
      <applicationTransition target="as_exit"/>
    </applicationState>
    <applicationState eId="as_checkout" service="Checkout">
      <protocolLayerEFSM>
        <protocolState eId="ps_checkout">
          <request type="beanshell" eId="r_checkout"/>
        </protocolState>
      </protocolLayerEFSM>
      <applicationTransition target="as_browse">
        <action parameter="items"/>
      </applicationTransition>
      <applicationTransition target="as_exit"/>
    </applicationState>
    <applicationExitState eId="as_exit"/>
  </sessionLayerEFSM>
  <behaviorModels>
    <behaviorModel name="buyer" filename="buyer.csv" initialState="ms_login">
      <markovState eId="ms_login" service="Login">
        <transition target="ms_browse" probability="0.8">
          <thinkTime type="normal" mean="300" deviation="100"/>
        </transition>
        <transition target="ms_exit" probability="0.2">
          <thinkTime type="normal" mean="0" deviation="0"/>
        </transition>
      </markovState>
      <markovState eId="ms_browse" service="Browse">
        <transition target="ms_checkout" probability="0.5">
          <thinkTime type="normal" mean="1500" deviation="250"/>
        </transition>
        <transition target="ms_exit" probability="0.5">
          <thinkTime type="normal" mean="0" deviation="0"/>
        </transition>
      </markovState>
      <markovState eId="ms_checkout" service="Checkout">
        <transition target="ms_exit" probability="1.0">
          <thinkTime type="normal" mean="0" deviation="0"/>
        </transition>
      </markovState>
      <behaviorModelExitState eId="ms_exit"/>
    </behaviorModel>
    <behaviorModel name="browser" filename="browser.csv">
      <markovState eId="ms_login" service="Login">
        <transition target="ms_browse" probability="1.0"/>
      </markovState>
      <markovState eId="ms_browse" service="Browse">
        <transition target="ms_browse" probability="0.7"/>
        <transition target="ms_exit" probability="0.3"/>
      </markovState>
      <behaviorModelExitState eId="ms_exit"/>
    </behaviorModel>
  </behaviorModels>
  <behaviorMix>
    <relativeFrequency behaviorModel="buyer" value="0.25"/>
    <relativeFrequency behaviorModel="browser" value="0.75"/>
  </behaviorMix>
</workloadModel>
"""


@pytest.fixture
def shop_model_xml():
    return SHOP_MODEL_XML


@pytest.fixture
def shop_model_file(tmp_path):
    path = tmp_path / 'shop.xml'
    path.write_text(SHOP_MODEL_XML, encoding='utf-8')
    return path


@pytest.fixture
def shop_session():
    return session_efsm(
        ['Login', 'Browse', 'Checkout'],
        [('Login', 'Browse'), ('Browse', 'Checkout'), ('Checkout', 'Browse')],
        exit_edges=['Checkout'],
    )


@pytest.fixture
def buyer_model(shop_session):
    return behavior_model(shop_session, 'buyer', {
        'Login': [('Browse', 0.8, normal(300, 100)), ('$', 0.2, normal(0, 0))],
        'Browse': [('Checkout', 0.6, normal(1500, 250)), ('$', 0.4, normal(0, 0))],
        'Checkout': [('$', 1.0, normal(0, 0))],
    })


@pytest.fixture
def shop_workload(shop_session, buyer_model):
    """Programmatic workload model with guards and actions on its transitions"""
    logged_in = GuardActionParameter(name='loggedIn', parameter_type=ParameterType.BOOLEAN)
    items = GuardActionParameter(name='items', parameter_type=ParameterType.INTEGER,
                                 initial_value='2', source_name='Checkout', target_name='Browse')

    login, browse, checkout = shop_session.application_states
    login.outgoing_transitions[0].guards.append(Guard(parameter=logged_in))
    login.outgoing_transitions[0].actions.append(Action(parameter=logged_in))
    browse.outgoing_transitions[0].guards.append(Guard(parameter=items))

    login.protocol_details.protocol_states[0].request.properties.append(
        Property(key='HTTPSampler.path', value='/login'))
    login.protocol_details.protocol_states[0].request.parameters.append(
        Parameter(name='user', value='alice'))
    login.protocol_details.protocol_states[0].request.assertions.append(
        Assertion(pattern_to_test='Welcome'))

    model = WorkloadModel(workload_intensity=WorkloadIntensity(formula='5'))
    model.application_model.session_layer_efsm = shop_session
    model.services.extend(state.service for state in shop_session.application_states)
    model.guard_action_parameters.extend([logged_in, items])
    model.behavior_models.append(buyer_model)
    model.behavior_mix = BehaviorMix(relative_frequencies=[
        RelativeFrequency(behavior_model=buyer_model, value=1.0)])
    return model
